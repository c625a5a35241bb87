"""
Core exceptions for Gadget Scout.
Custom exception classes for structured error handling.
"""

from typing import Optional, Dict, Any


class GadgetScoutException(Exception):
    """Base exception for Gadget Scout errors."""

    def __init__(
        self,
        message: str,
        error_code: str = "GADGET_SCOUT_ERROR",
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


# =========================
# Configuration Exceptions
# =========================

class ConfigurationException(GadgetScoutException):
    """Base exception for configuration errors. Never retried."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="CONFIGURATION_ERROR",
            status_code=503,
            details=details
        )


class MissingCredentialException(ConfigurationException):
    """Raised when a service is called without its API key."""

    def __init__(self, setting_name: str, service: str):
        super().__init__(
            message=f"{setting_name} is not configured; {service} is unavailable",
            details={"setting": setting_name, "service": service}
        )


# =========================
# Catalog Exceptions
# =========================

class CatalogException(GadgetScoutException):
    """Base exception for catalog errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="CATALOG_ERROR",
            status_code=500,
            details=details
        )


class CatalogLoadException(CatalogException):
    """Raised when the catalog document cannot be read or parsed."""

    def __init__(self, source: str, error: str):
        super().__init__(
            message=f"Failed to load catalog from '{source}': {error}",
            details={"source": source, "error": error}
        )


class ProductNotFoundException(CatalogException):
    """Raised when a product ID is not in the catalog."""

    def __init__(self, product_id: str):
        super().__init__(
            message=f"Product '{product_id}' not found",
            details={"product_id": product_id}
        )
        self.status_code = 404


# =========================
# Embedding Exceptions
# =========================

class EmbeddingException(GadgetScoutException):
    """Base exception for embedding errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="EMBEDDING_ERROR",
            status_code=502,
            details=details
        )


class EmbeddingAPIException(EmbeddingException):
    """Raised when the embedding API call fails or returns a malformed batch."""

    def __init__(self, api_error: str):
        super().__init__(
            message=f"Embedding API error: {api_error}",
            details={"api_error": api_error}
        )


# =========================
# LLM Exceptions
# =========================

class LLMException(GadgetScoutException):
    """Base exception for LLM errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="LLM_ERROR",
            status_code=502,
            details=details
        )


class LLMAPIException(LLMException):
    """Raised when the model API returns an error."""

    def __init__(self, api_error: str, provider: str = "gemini"):
        super().__init__(
            message=f"LLM API error: {api_error}",
            details={"api_error": api_error, "provider": provider}
        )


class LLMRateLimitException(LLMException):
    """Raised when the model API rate limit is exceeded."""

    def __init__(self, provider: str = "gemini"):
        super().__init__(
            message="LLM API rate limit exceeded",
            details={"provider": provider}
        )


# =========================
# Tool Exceptions
# =========================

class ToolException(GadgetScoutException):
    """Base exception for tool call errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="TOOL_ERROR",
            status_code=500,
            details=details
        )


class ToolNotFoundException(ToolException):
    """Raised when the model calls a tool that was never declared."""

    def __init__(self, tool_name: str):
        super().__init__(
            message=f"Tool '{tool_name}' not found in registry",
            details={"tool_name": tool_name}
        )


class ToolValidationException(ToolException):
    """Raised when tool call arguments fail validation."""

    def __init__(self, tool_name: str, validation_errors: list):
        super().__init__(
            message=f"Tool '{tool_name}' input validation failed",
            details={"tool_name": tool_name, "validation_errors": validation_errors}
        )


# =========================
# Session Exceptions
# =========================

class SessionException(GadgetScoutException):
    """Base exception for session errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 400
    ):
        super().__init__(
            message=message,
            error_code="SESSION_ERROR",
            status_code=status_code,
            details=details
        )


class SessionNotFoundException(SessionException):
    """Raised when session is not found."""

    def __init__(self, session_id: str):
        super().__init__(
            message=f"Session '{session_id}' not found",
            details={"session_id": session_id},
            status_code=404
        )


class TurnInProgressException(SessionException):
    """Raised when a message is submitted while a turn is still in flight."""

    def __init__(self, session_id: str):
        super().__init__(
            message=f"Session '{session_id}' is still answering the previous message",
            details={"session_id": session_id},
            status_code=409
        )


class EmptyMessageException(SessionException):
    """Raised when a blank message is submitted."""

    def __init__(self):
        super().__init__(message="Message text is empty")


# =========================
# Voice Exceptions
# =========================

class VoiceException(GadgetScoutException):
    """Base exception for realtime audio errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="VOICE_ERROR",
            status_code=503,
            details=details
        )


class AudioDeviceException(VoiceException):
    """Raised when a microphone or speaker cannot be opened."""

    def __init__(self, device: str, error: str):
        super().__init__(
            message=f"Audio device '{device}' unavailable: {error}",
            details={"device": device, "error": error}
        )


class VoiceChannelException(VoiceException):
    """Raised when the live model channel fails to open or breaks mid-stream."""

    def __init__(self, error: str):
        super().__init__(
            message=f"Live channel error: {error}",
            details={"error": error}
        )


class VoiceStateException(VoiceException):
    """Raised on an illegal voice pipeline transition."""

    def __init__(self, current: str, requested: str):
        super().__init__(
            message=f"Cannot move voice pipeline from '{current}' to '{requested}'",
            details={"current": current, "requested": requested}
        )
