"""Shared test fixtures for the Switchboard test suite."""

import os
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest

from switchboard.relay.delivery import ReplyOutcome
from switchboard.sessions.models import BotProfile, Channel, Session, new_session_id


@pytest.fixture
def test_config_dir(tmp_path: Path) -> Path:
    """Create a temporary config directory for testing."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def mock_toml_files(test_config_dir: Path) -> Callable[[dict[str, str]], None]:
    """Factory fixture to create TOML files in the test config directory.

    Usage:
        def test_something(mock_toml_files):
            mock_toml_files({
                "default.toml": "app_name = 'test'",
                "development.toml": "debug = true",
            })
    """

    def _create_toml_files(files: dict[str, str]) -> None:
        for filename, content in files.items():
            (test_config_dir / filename).write_text(content)

    return _create_toml_files


class EnvOverrideContext:
    """Context manager for temporarily setting environment variables."""

    def __init__(self, overrides: dict[str, str]) -> None:
        self.overrides = overrides
        self.original_env: dict[str, str | None] = {}

    def __enter__(self) -> None:
        for key, value in self.overrides.items():
            self.original_env[key] = os.environ.get(key)
            os.environ[key] = value

    def __exit__(self, *args: Any) -> None:
        for key in self.overrides:
            if self.original_env[key] is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = self.original_env[key]


@pytest.fixture
def env_override() -> Generator[Callable[[dict[str, str]], EnvOverrideContext], None, None]:
    """Context manager for temporarily setting environment variables.

    Usage:
        def test_something(env_override):
            with env_override({"SWITCHBOARD_DEBUG": "true"}):
                ...
    """

    def _env_override(overrides: dict[str, str]) -> EnvOverrideContext:
        return EnvOverrideContext(overrides)

    yield _env_override


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Generator[None, None, None]:
    """Clear the settings cache before and after each test."""
    from switchboard.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def reset_structlog() -> Generator[None, None, None]:
    """Undo any structlog configuration a test applied.

    setup_logging binds the logger to the sys.stderr of the moment, which
    under pytest is a per-test capture stream that is closed afterwards.
    """
    import structlog

    yield
    structlog.reset_defaults()


# =============================================================================
# Session fixtures
# =============================================================================


@pytest.fixture
def bot_profile() -> BotProfile:
    return BotProfile(name="Support Bot", active=True, webhook_url="https://hooks.test/reply")


@pytest.fixture
def make_session(bot_profile: BotProfile) -> Callable[..., Session]:
    """Factory for sessions; chat by default, with a resolved bot."""

    def _make(channel: Channel = Channel.CHAT, **overrides: Any) -> Session:
        data: dict[str, Any] = {
            "id": new_session_id(channel),
            "channel": channel,
            "backend_config": bot_profile,
        }
        data.update(overrides)
        return Session(**data)

    return _make


class FakeTransport:
    """Records everything the state machine asks the transport to do."""

    def __init__(self) -> None:
        self.welcomes: list[str] = []
        self.acks: list[str] = []
        self.errors: list[str] = []
        self.pongs = 0
        self.replies: list[str] = []
        self.ready: list[str] = []
        self.closed: list[tuple[int, str]] = []
        self.reply_outcome: Callable[[Session, str], ReplyOutcome] | None = None

    async def send_welcome(self, session: Session) -> None:
        self.welcomes.append(session.id)

    async def acknowledge_details(self, session: Session) -> None:
        self.acks.append(session.id)

    async def send_error(self, message: str) -> None:
        self.errors.append(message)

    async def answer_ping(self) -> None:
        self.pongs += 1

    async def deliver_reply(self, session: Session, text: str) -> ReplyOutcome:
        self.replies.append(text)
        if self.reply_outcome is not None:
            return self.reply_outcome(session, text)
        return ReplyOutcome(content=text)

    async def on_ready(self, session: Session) -> None:
        self.ready.append(session.id)

    async def close(self, code: int, reason: str) -> None:
        self.closed.append((code, reason))


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()
