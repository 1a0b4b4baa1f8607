"""Channel configuration models for chat and voice sessions."""

from pydantic import BaseModel, Field

from switchboard.sessions.models import PromptField

DEFAULT_PROMPT_FIELDS = [
    PromptField(name="name", label="Your Name", required=True, type="text"),
    PromptField(name="email", label="Email Address", required=True, type="email"),
    PromptField(name="phone", label="Phone Number", required=False, type="phone"),
]


class ChatConfig(BaseModel):
    """Chat (WebSocket) channel settings."""

    admission_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Time allowed for bot resolution before the connection is closed",
    )
    heartbeat_interval_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Interval between heartbeat frames once the session is ready",
    )
    webhook_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Webhook request timeout for chat utterances",
    )
    max_frame_bytes: int = Field(
        default=1024 * 1024,
        gt=0,
        description="Largest accepted inbound frame",
    )
    default_prompt_fields: list[PromptField] = Field(
        default_factory=lambda: list(DEFAULT_PROMPT_FIELDS),
        description="Prompt fields sent when the bot does not configure any",
    )
    details_ack_text: str = Field(
        default="Thank you! How can I help you today?",
        description="Acknowledgement sent after user details are received",
    )


class VoiceConfig(BaseModel):
    """Voice (telephony host) channel settings."""

    webhook_url: str | None = Field(
        default=None,
        description="Default webhook for voice calls",
    )
    webhook_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Webhook request timeout for spoken utterances",
    )
    chunk_size: int = Field(
        default=5,
        gt=0,
        description="Words per streamed reply chunk",
    )
    chunk_delay_seconds: float = Field(
        default=0.05,
        ge=0,
        description="Pause between reply chunks",
    )
    greeting: str = Field(
        default="Hi there, how can I help you today?",
        description="Greeting spoken when the call starts",
    )
    min_barge_in_word_count: int = Field(
        default=1,
        ge=1,
        description="Words the caller must speak before a barge-in counts",
    )
    resolve_bot_by_dnis: bool = Field(
        default=False,
        description="Look up the bot by dialed number before falling back to webhook_url",
    )


class RelayConfig(BaseModel):
    """Replies used when the webhook cannot supply one."""

    fallback_reply: str = Field(
        default="I am currently processing your request. Please wait a moment.",
        description="Sent when the webhook call fails or times out",
    )
    empty_reply: str = Field(
        default="Thank you for your message. I will get back to you soon.",
        description="Sent when the webhook answers without a reply",
    )
