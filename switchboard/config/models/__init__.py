"""Configuration models for each settings section."""

from switchboard.config.models.api import APIConfig
from switchboard.config.models.backend import BackendConfig
from switchboard.config.models.channels import ChatConfig, RelayConfig, VoiceConfig
from switchboard.config.models.observability import (
    LoggingConfig,
    MetricsConfig,
    ObservabilityConfig,
)
from switchboard.config.models.providers import (
    LLMProviderConfig,
    ProvidersConfig,
    SummarizationConfig,
)

__all__ = [
    "APIConfig",
    "BackendConfig",
    "ChatConfig",
    "VoiceConfig",
    "RelayConfig",
    "LoggingConfig",
    "MetricsConfig",
    "ObservabilityConfig",
    "LLMProviderConfig",
    "ProvidersConfig",
    "SummarizationConfig",
]
