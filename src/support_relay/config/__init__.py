"""
Configuration Module
====================

Application settings and relay configuration management using Pydantic.

Two layers:
- Settings: process/environment settings (server, logging, secrets)
- RelayConfig: the bot behaviour loaded from a YAML file (language strings,
  feature flags, FAQ table, spam limits, staff chat, LLM knowledge base)
"""

from functools import lru_cache
from pathlib import Path
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="support-relay", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Relay ==========
    relay_config_path: Path = Field(
        default=Path("config.yaml"),
        description="Path to the relay YAML configuration"
    )
    llm_api_key: Optional[str] = Field(
        default=None,
        description="LLM API key, used when the YAML config does not set one"
    )

    # ========== Message Delivery ==========
    delivery_webhook_url: Optional[str] = Field(
        default=None,
        description="Webhook that delivers outbound messages to the messenger gateway"
    )
    delivery_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout for delivery webhook calls",
        ge=0.1,
        le=30
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8080"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"log_level must be one of {allowed}")
        return v.upper()


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# ========== Constants ==========

class TicketStatus(str):
    """Ticket lifecycle statuses."""
    OPEN = "open"
    CLOSED = "closed"


class ParseMode(str):
    """Markup dialects understood by the messenger."""
    MARKDOWN = "Markdown"
    MARKDOWN_V2 = "MarkdownV2"
    HTML = "HTML"


class Messenger(str):
    """Known messenger identifiers."""
    TELEGRAM = "telegram"


DEFAULT_NULL_SENTINELS = ["null", "Null"]


# ========== Relay Configuration ==========

class LanguageStrings(BaseModel):
    """User- and staff-facing text fragments."""
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    dear: str = "Dear"
    regards: str = "Best regards,"
    automated_reply_author: str = "Support Team"
    automated_reply: str = "This is an automated reply."
    automated_reply_sent: str = "An automated reply was sent to the user."
    confirmation_message: str = "Thank you for contacting us."
    ticket: str = "Ticket"
    from_: str = Field(default="from", alias="from")
    language: str = "Language"
    blocked_spam: str = "You sent too many messages. Please wait a moment before writing again."


class FaqEntry(BaseModel):
    """A question fragment and the canned answer it triggers."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    question: str = Field(..., min_length=1)
    answer: str = Field(..., min_length=1)


class KnowledgeConfig(BaseModel):
    """LLM connection and knowledge base settings."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    model: Optional[str] = Field(default=None, description="Chat model identifier")
    api_key: Optional[str] = Field(default=None, description="API key for the LLM endpoint")
    base_url: Optional[str] = Field(default=None, description="OpenAI-compatible base URL")
    system_prompt: Optional[str] = Field(default=None, description="Overrides the built-in prompt")
    knowledge: str = Field(default="", description="Knowledge base text")
    knowledge_path: Optional[Path] = Field(default=None, description="File holding the knowledge base")
    log_responses: bool = False
    timeout_seconds: float = Field(default=30.0, gt=0, le=600)
    reasoning_effort: Optional[Literal["low", "medium", "high"]] = None
    null_sentinels: List[str] = Field(default_factory=lambda: list(DEFAULT_NULL_SENTINELS))

    @model_validator(mode="after")
    def load_knowledge_file(self) -> "KnowledgeConfig":
        """Read the knowledge base from disk when a path is given."""
        if self.knowledge_path is not None and not self.knowledge:
            try:
                text = self.knowledge_path.read_text(encoding="utf-8")
            except OSError as e:
                raise ValueError(f"cannot read knowledge_path {self.knowledge_path}: {e}")
            object.__setattr__(self, "knowledge", text)
        return self


class RelayConfig(BaseModel):
    """
    Validated snapshot of the relay bot configuration.

    Read-only for the lifetime of the process; build a new one (and new
    services from it) to change behaviour.
    """
    model_config = ConfigDict(extra="forbid", frozen=True)

    language: LanguageStrings = Field(default_factory=LanguageStrings)

    # ========== Feature Flags ==========
    use_llm: bool = False
    clean_replies: bool = False
    show_auto_replied: bool = False
    autoreply_confirmation: bool = True
    show_user_ticket: bool = False

    # ========== FAQ ==========
    autoreply: List[FaqEntry] = Field(default_factory=list)
    autoreply_case_sensitive: bool = False

    # ========== Spam ==========
    spam_window_seconds: float = Field(default=300.0, gt=0)
    spam_max_messages: int = Field(default=5, ge=1)

    # ========== Staff Chat ==========
    staffchat_id: str = Field(..., min_length=1)
    staffchat_type: str = Field(default=Messenger.TELEGRAM, min_length=1)
    parse_mode: Literal["Markdown", "MarkdownV2", "HTML"] = ParseMode.MARKDOWN

    # ========== LLM ==========
    llm: KnowledgeConfig = Field(default_factory=KnowledgeConfig)

    @field_validator("staffchat_id", mode="before")
    @classmethod
    def coerce_staffchat_id(cls, v):
        """Chat ids are often written as bare integers in YAML."""
        if isinstance(v, int):
            return str(v)
        return v

    @model_validator(mode="after")
    def validate_llm(self) -> "RelayConfig":
        """LLM answers need a model and something to ground them on."""
        if self.use_llm:
            if not self.llm.model:
                raise ValueError("use_llm requires llm.model")
            if not self.llm.knowledge.strip():
                raise ValueError("use_llm requires llm.knowledge or llm.knowledge_path")
        return self
