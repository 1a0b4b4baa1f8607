"""Dependency injection for API routes.

Shared collaborators (registry, backend client, dispatcher, recorder) are
created once per process and reused by every route and WebSocket. Tests
override them through ``app.dependency_overrides`` or reset them with
``reset_dependencies``.
"""

from typing import Annotated

from fastapi import Depends

from switchboard.backend.client import BackendClient
from switchboard.config import get_settings as load_settings
from switchboard.config.settings import Settings
from switchboard.observability.logging import get_logger
from switchboard.providers.llm import ProviderError, create_llm_provider
from switchboard.recording.recorder import ConversationRecorder
from switchboard.relay.dispatcher import WebhookDispatcher
from switchboard.sessions.models import Channel
from switchboard.sessions.registry import SessionRegistry
from switchboard.summarization.summarizer import ConversationSummarizer
from switchboard.transports.chat import ChatAdapter
from switchboard.transports.voice import VoiceAdapter

logger = get_logger(__name__)

_registry: SessionRegistry | None = None
_backend_client: BackendClient | None = None
_dispatcher: WebhookDispatcher | None = None
_summarizer: ConversationSummarizer | None = None
_summarizer_resolved = False
_recorder: ConversationRecorder | None = None


def get_settings() -> Settings:
    """Get application settings."""
    return load_settings()


async def get_registry() -> SessionRegistry:
    """Get the process-wide session registry."""
    global _registry
    if _registry is None:
        _registry = SessionRegistry()
    return _registry


async def get_backend_client(
    settings: Annotated[Settings, Depends(get_settings)],
) -> BackendClient:
    """Get the shared backend client."""
    global _backend_client
    if _backend_client is None:
        _backend_client = BackendClient(
            base_url=settings.backend.base_url,
            timeout=settings.backend.timeout_seconds,
        )
        logger.info("backend_client_initialized", base_url=settings.backend.base_url)
    return _backend_client


async def get_dispatcher(
    settings: Annotated[Settings, Depends(get_settings)],
) -> WebhookDispatcher:
    """Get the shared webhook dispatcher."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = WebhookDispatcher(
            settings.relay,
            timeouts={
                Channel.CHAT: settings.chat.webhook_timeout_seconds,
                Channel.VOICE: settings.voice.webhook_timeout_seconds,
            },
        )
    return _dispatcher


async def get_summarizer(
    settings: Annotated[Settings, Depends(get_settings)],
) -> ConversationSummarizer | None:
    """Get the conversation summarizer, or None when summarization is off.

    A provider that cannot be built (e.g. missing API key) disables
    summarization instead of failing the request.
    """
    global _summarizer, _summarizer_resolved
    if not _summarizer_resolved:
        _summarizer_resolved = True
        if settings.summarization.enabled:
            config = settings.providers.summarizer
            try:
                provider = create_llm_provider(config)
            except ProviderError as e:
                logger.warning("summarizer_unavailable", error=str(e))
            else:
                _summarizer = ConversationSummarizer(
                    provider,
                    model=config.model,
                    max_tokens=config.max_tokens,
                    temperature=config.temperature,
                )
                logger.info("summarizer_initialized", provider=provider.provider_name)
    return _summarizer


async def get_recorder(
    backend: Annotated[BackendClient, Depends(get_backend_client)],
    summarizer: Annotated[ConversationSummarizer | None, Depends(get_summarizer)],
) -> ConversationRecorder:
    """Get the shared conversation recorder."""
    global _recorder
    if _recorder is None:
        _recorder = ConversationRecorder(backend, summarizer=summarizer)
    return _recorder


async def get_chat_adapter(
    settings: Annotated[Settings, Depends(get_settings)],
    registry: Annotated[SessionRegistry, Depends(get_registry)],
    backend: Annotated[BackendClient, Depends(get_backend_client)],
    dispatcher: Annotated[WebhookDispatcher, Depends(get_dispatcher)],
    recorder: Annotated[ConversationRecorder, Depends(get_recorder)],
) -> ChatAdapter:
    return ChatAdapter(registry, backend, dispatcher, recorder, settings.chat)


async def get_voice_adapter(
    settings: Annotated[Settings, Depends(get_settings)],
    registry: Annotated[SessionRegistry, Depends(get_registry)],
    backend: Annotated[BackendClient, Depends(get_backend_client)],
    dispatcher: Annotated[WebhookDispatcher, Depends(get_dispatcher)],
    recorder: Annotated[ConversationRecorder, Depends(get_recorder)],
) -> VoiceAdapter:
    return VoiceAdapter(registry, backend, dispatcher, recorder, settings.voice)


# Type aliases for cleaner route signatures
SettingsDep = Annotated[Settings, Depends(get_settings)]
RegistryDep = Annotated[SessionRegistry, Depends(get_registry)]
BackendClientDep = Annotated[BackendClient, Depends(get_backend_client)]
ChatAdapterDep = Annotated[ChatAdapter, Depends(get_chat_adapter)]
VoiceAdapterDep = Annotated[VoiceAdapter, Depends(get_voice_adapter)]


async def shutdown_dependencies() -> None:
    """Wait for background summaries and close shared HTTP clients."""
    if _recorder is not None:
        await _recorder.drain()
    if _dispatcher is not None:
        await _dispatcher.close()
    if _backend_client is not None:
        await _backend_client.close()
    if _summarizer is not None:
        await _summarizer.close()


async def reset_dependencies() -> None:
    """Release and forget all shared instances (for testing)."""
    global _registry, _backend_client, _dispatcher
    global _summarizer, _summarizer_resolved, _recorder

    await shutdown_dependencies()

    _registry = None
    _backend_client = None
    _dispatcher = None
    _summarizer = None
    _summarizer_resolved = False
    _recorder = None
