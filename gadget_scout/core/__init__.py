"""Core module initialization."""

from gadget_scout.core.exceptions import (
    GadgetScoutException,
    ConfigurationException,
    CatalogException,
    EmbeddingException,
    LLMException,
    ToolException,
    SessionException,
    VoiceException
)
from gadget_scout.core.session import SessionManager, ChatSession

__all__ = [
    "GadgetScoutException",
    "ConfigurationException",
    "CatalogException",
    "EmbeddingException",
    "LLMException",
    "ToolException",
    "SessionException",
    "VoiceException",
    "SessionManager",
    "ChatSession"
]
