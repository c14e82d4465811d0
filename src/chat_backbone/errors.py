"""Exception hierarchy for the bot runtime.

Registry errors are raised while building or starting a bot and are fatal to
that step. Chat errors describe misuse of the send path; ``send_message``
reports them inside a ``SendResult`` rather than raising.
"""

from __future__ import annotations


class BackboneError(Exception):
    """Base exception for all chat-backbone errors."""


class ConfigurationError(BackboneError):
    """Bot configuration is invalid."""


# =============================================================================
# Registry Errors
# =============================================================================


class RegistryError(BackboneError):
    """Base exception for service registry errors."""


class DuplicateNameError(RegistryError):
    """A service with the same name is already registered."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Service {name!r} is already registered")
        self.name = name


class UnknownServiceError(RegistryError, KeyError):
    """No service with the requested name exists."""

    def __init__(self, name: str) -> None:
        super().__init__(f"No service named {name!r}")
        self.name = name

    def __str__(self) -> str:
        return str(self.args[0])


class ServiceResolutionError(RegistryError):
    """A service class reference could not be loaded.

    Attributes:
        name: Name of the service being built.
        reference: The reference as written in the service definition.
        resolved: The dotted path the reference resolved to, if any.
    """

    def __init__(self, name: str, reference: str, resolved: str | None, reason: str) -> None:
        target = f" ({resolved})" if resolved and resolved != reference else ""
        super().__init__(f"Cannot resolve service {name!r} class {reference!r}{target}: {reason}")
        self.name = name
        self.reference = reference
        self.resolved = resolved


class ServiceConstructionError(RegistryError):
    """A service class raised while being constructed."""

    def __init__(self, name: str, reason: str) -> None:
        super().__init__(f"Failed to construct service {name!r}: {reason}")
        self.name = name


class ServiceStartupError(RegistryError):
    """One or more services failed to initialize.

    Attributes:
        failures: Mapping of service name to the exception it raised,
            in initialize order.
    """

    def __init__(self, failures: dict[str, BaseException]) -> None:
        names = ", ".join(failures)
        super().__init__(f"Failed to initialize service(s): {names}")
        self.failures = failures


# =============================================================================
# Chat Errors
# =============================================================================


class ChatError(BackboneError):
    """Base exception for chat routing errors."""


class AmbiguousTargetError(ChatError, ValueError):
    """A send named both a user and a group, or neither."""


class ChatClosedError(ChatError):
    """The chat has been shut down and no longer sends."""
