"""Base class shared by all bot services.

Provides the name, the weak back-reference to the owning bot, and lifecycle
state tracking. Capabilities come from mixins or from the subclass itself.
"""

from __future__ import annotations

import weakref
from enum import Enum
from typing import TYPE_CHECKING, Any, TypeVar

if TYPE_CHECKING:
    from .bot import Bot

T = TypeVar("T")


class ServiceState(Enum):
    """Lifecycle states of a service. SHUT_DOWN is terminal."""

    CONSTRUCTED = "constructed"
    INITIALIZED = "initialized"
    RUNNING = "running"
    SHUT_DOWN = "shut_down"


class BaseService:
    """A named component attached to a bot.

    The bot owns its services; a service only keeps a weak reference back to
    the bot, used to look up sibling services by name.

    Subclasses override ``initialize`` and, when they hold resources,
    ``shutdown``. Unknown keyword parameters from the service definition are
    rejected by ``__init__`` so configuration typos fail at build time.
    """

    def __init__(self, *, name: str, bot: Bot, **params: Any) -> None:
        if params:
            unknown = ", ".join(sorted(params))
            raise TypeError(f"{type(self).__name__} got unexpected parameter(s): {unknown}")
        self.name = name
        self._bot_ref: weakref.ReferenceType[Bot] = weakref.ref(bot)
        self._state = ServiceState.CONSTRUCTED

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r} {self._state.value}>"

    @property
    def bot(self) -> Bot:
        """Return the owning bot.

        Raises:
            RuntimeError: If the bot has already been garbage collected
        """
        bot = self._bot_ref()
        if bot is None:
            raise RuntimeError(f"Bot owning service {self.name!r} no longer exists")
        return bot

    @property
    def state(self) -> ServiceState:
        return self._state

    @state.setter
    def state(self, value: ServiceState) -> None:
        if self._state == ServiceState.SHUT_DOWN and value != ServiceState.SHUT_DOWN:
            raise RuntimeError(f"Service {self.name!r} is shut down")
        self._state = value

    def lookup(self, name: str, capability: type[T]) -> T:
        """
        Find a sibling service that implements a capability.

        Args:
            name: Registered service name
            capability: Capability protocol the service must satisfy

        Returns:
            The service

        Raises:
            UnknownServiceError: If no service has that name
            TypeError: If the service lacks the capability
        """
        service = self.bot.get_service(name)
        if not isinstance(service, capability):
            raise TypeError(
                f"Service {name!r} referenced by {self.name!r} "
                f"is not a {capability.__name__}"
            )
        return service

    async def initialize(self) -> None:
        """Start the service. The default does nothing."""

    async def shutdown(self) -> None:
        """Stop the service. The default does nothing."""


__all__ = ["BaseService", "ServiceState"]
