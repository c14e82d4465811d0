"""Shared test fixtures for chat-backbone."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from chat_backbone.core.bot import Bot
from chat_backbone.core.service import BaseService
from chat_backbone.models.message import Identity, Message
from chat_backbone.models.policy import SendPolicyResult
from chat_backbone.models.send import SendParams
from chat_backbone.services.memory import MemoryChat


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingConsumer:
    """Chat consumer that remembers what it received."""

    def __init__(self, name: str, log: list[tuple[str, Message]] | None = None) -> None:
        self.name = name
        self.received: list[Message] = []
        self._log = log

    def receive_message(self, message: Message) -> None:
        self.received.append(message)
        if self._log is not None:
            self._log.append((self.name, message))


class RecordingDispatcher:
    """Dispatcher that remembers what it was given."""

    def __init__(self) -> None:
        self.dispatched: list[Message] = []

    def dispatch(self, message: Message) -> None:
        self.dispatched.append(message)


class StaticPolicy:
    """Send policy that always returns the same result."""

    def __init__(self, result: SendPolicyResult) -> None:
        self.result = result
        self.calls: list[SendParams] = []
        self.commits: list[tuple[SendParams, SendPolicyResult]] = []

    def evaluate(self, params: SendParams) -> SendPolicyResult:
        self.calls.append(params)
        return self.result

    def commit(self, params: SendParams, result: SendPolicyResult) -> None:
        self.commits.append((params, result))


class DispatcherService(BaseService):
    """Dispatcher that can be registered on a bot."""

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.dispatched: list[Message] = []

    def dispatch(self, message: Message) -> None:
        self.dispatched.append(message)


def _build_message(
    text: str = "hello",
    from_user: str = "alice",
    *,
    group: str | None = None,
    to: str | None = "helper",
    chat: Any = None,
) -> Message:
    return Message(
        chat=chat,
        from_=Identity.of(from_user),
        to=None if group is not None else Identity.of(to or "helper"),
        group=group,
        text=text,
    )


@pytest.fixture
def clock() -> FakeClock:
    """Return a fake clock starting at t=1000; move it with ``advance``."""
    return FakeClock()


@pytest.fixture
def bot() -> Bot:
    """Return an empty bot."""
    return Bot(name="test-bot")


@pytest.fixture
def memory_chat(bot: Bot) -> MemoryChat:
    """Return a memory chat attached to the bot but not initialized."""
    return MemoryChat(name="chat", bot=bot, nickname="helper")


@pytest.fixture
def make_message() -> Callable[..., Message]:
    """Return a builder for a direct message, or a group message when ``group`` is set."""
    return _build_message


@pytest.fixture
def make_consumer() -> Callable[..., Any]:
    """Return a factory for consumers that record what they receive.

    Passing a shared list as ``log`` records (name, message) pairs across
    consumers, in delivery order.
    """
    return RecordingConsumer


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    """Return a dispatcher that records what it was given."""
    return RecordingDispatcher()


@pytest.fixture
def make_policy() -> Callable[[SendPolicyResult], Any]:
    """Return a factory for policies that always give one result.

    The policies record evaluated sends in ``calls`` and committed ones in
    ``commits``.
    """
    return StaticPolicy


@pytest.fixture
def dispatcher_service() -> type[BaseService]:
    """Return a service class that records dispatched messages."""
    return DispatcherService
