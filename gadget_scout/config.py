"""
Configuration management for Gadget Scout.
Loads settings from environment variables with sensible defaults.
"""

from pathlib import Path
from typing import Optional
from pydantic_settings import BaseSettings
from pydantic import Field
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # =========================
    # Application Settings
    # =========================
    APP_NAME: str = "Gadget Scout"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = Field(default=False, description="Enable debug mode")
    ENVIRONMENT: str = Field(default="development", description="Environment name")

    # =========================
    # Store Persona
    # =========================
    STORE_NAME: str = Field(default="Gadgets and Those", description="Store name used in prompts")
    FEATURED_PRODUCT_ID: Optional[str] = Field(
        default=None,
        description="Deal of the Day product id (defaults to the first catalog entry)"
    )
    PROMO_CODE: Optional[str] = Field(default="GADGETS15", description="Community promo code")
    PROMO_DISCOUNT_PERCENT: int = Field(default=15, description="Promo discount in percent")

    # =========================
    # API Keys
    # =========================
    GEMINI_API_KEY: Optional[str] = Field(default=None, description="Gemini API key (chat, live audio, embeddings)")
    GROQ_API_KEY: Optional[str] = Field(default=None, description="Groq API key for the alternative text provider")

    # =========================
    # Server Settings
    # =========================
    HOST: str = Field(default="0.0.0.0", description="Server host")
    PORT: int = Field(default=8000, description="Server port")

    # =========================
    # Model Settings
    # =========================
    LLM_PROVIDER: str = Field(default="gemini", description="Text chat provider: gemini or groq")
    CHAT_MODEL_ID: str = Field(default="gemini-2.0-flash", description="Gemini chat model")
    GROQ_MODEL_ID: str = Field(default="llama-3.3-70b-versatile", description="Groq chat model")
    LIVE_MODEL_ID: str = Field(
        default="gemini-2.5-flash-native-audio-preview-12-2025",
        description="Gemini live (bidirectional audio) model"
    )
    EMBEDDING_MODEL_ID: str = Field(default="text-embedding-004", description="Embedding model")
    VOICE_NAME: str = Field(default="Zephyr", description="Prebuilt synthesized voice")
    LLM_TEMPERATURE: float = Field(default=0.7, description="Sampling temperature")
    LLM_MAX_TOKENS: int = Field(default=1024, description="Maximum tokens per reply (Groq)")

    # =========================
    # Retrieval Settings
    # =========================
    RETRIEVAL_MODE: str = Field(
        default="auto",
        description="auto, embedding or keyword"
    )
    RETRIEVAL_TOP_K: int = Field(default=3, description="Products injected per turn")
    KEYWORD_MIN_LENGTH: int = Field(default=3, description="Shortest query word used by keyword scoring")

    # =========================
    # Audio Settings
    # =========================
    INPUT_SAMPLE_RATE: int = Field(default=16000, description="Capture sample rate in Hz")
    OUTPUT_SAMPLE_RATE: int = Field(default=24000, description="Playback sample rate in Hz")
    INPUT_FRAME_SIZE: int = Field(default=4096, description="Samples per uplink frame")
    OUTPUT_CHUNK_FRAMES: int = Field(default=1024, description="Frames written per playback device write")

    # =========================
    # Catalog Settings
    # =========================
    CATALOG_SOURCE: str = Field(
        default="./data/products.json",
        description="Catalog document path or http(s) URL"
    )
    CATALOG_TIMEOUT_SECONDS: float = Field(default=10.0, description="Remote catalog fetch timeout")

    # =========================
    # Session Settings
    # =========================
    SESSION_TIMEOUT_MINUTES: int = Field(default=30, description="Session idle timeout")
    MAX_SESSIONS: int = Field(default=100, description="Maximum concurrent sessions")

    # =========================
    # Logging Settings
    # =========================
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    AGENT_LOG_PATH: Path = Field(
        default=Path("./logs/agent_log.md"),
        description="Path to agent markdown log"
    )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Name of the single structured action the model may invoke
RECOMMEND_PRODUCT_TOOL_NAME = "recommend_product"

# Fixed assistant texts
TURN_FALLBACK_TEXT = "I hit a snag in the comms. What was that again?"
GREETING_FALLBACK_TEXT = "Hey! Gadget Scout here. What are we optimizing today?"
VOICE_UNAVAILABLE_NOTICE = "Voice mode is unavailable right now, so we're back to text."

# Retrieval modes
RETRIEVAL_MODES = ["auto", "embedding", "keyword"]

# Text chat providers
LLM_PROVIDERS = ["gemini", "groq"]
