"""Service registry that owns and drives a bot's services.

This module implements the Bot class, the root of a running chat bot. It:
- Holds the ordered service definitions declared for the bot
- Resolves service class references and constructs every service
- Initializes services in declaration order
- Shuts services down in reverse order, isolating failures
"""

from __future__ import annotations

import importlib
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, TypeVar

import structlog

from ..errors import (
    DuplicateNameError,
    RegistryError,
    ServiceConstructionError,
    ServiceResolutionError,
    ServiceStartupError,
    UnknownServiceError,
)
from ..interfaces.capabilities import Service
from ..utils.logging import service_context
from .service import BaseService, ServiceState

if TYPE_CHECKING:
    from ..config.schema import BotConfig

log = structlog.get_logger()

T = TypeVar("T")

# Service references without a sentinel resolve here
BUILTIN_NAMESPACE = "chat_backbone.services"

LOCAL_SENTINEL = "."
VERBATIM_SENTINEL = "="


@dataclass(frozen=True)
class ServiceDefinition:
    """A declared, not yet constructed, service."""

    name: str
    reference: str | type
    params: Mapping[str, Any] = field(default_factory=dict)


class Bot:
    """Owns a bot's named services and drives their lifecycle.

    Services are kept in declaration order. That order is the construction
    and initialize order; shutdown runs in reverse.

    Service class references follow a three-way naming rule:

    - ``".Name"`` resolves against the bot's own ``namespace``
    - ``"=package.module.Name"`` is a fully qualified path, used verbatim
    - ``"Name"`` resolves against the built-in ``chat_backbone.services``

    A class object may be given instead of a string.

    Example:
        bot = Bot(name="helper", namespace="mybot.services")
        bot.register("chat", "MemoryChat", {"nickname": "helper"})
        bot.register("echo", "Echo", {"chat": "chat"})
        await bot.run()
        ...
        await bot.shutdown_all()
    """

    def __init__(
        self,
        name: str = "bot",
        namespace: str | None = None,
        stop_on_error: bool = True,
    ) -> None:
        """Initialize the Bot.

        Args:
            name: Display name of the bot
            namespace: Dotted module path that ``.``-prefixed service
                references resolve against
            stop_on_error: If True, the first failing ``initialize`` aborts
                startup; otherwise the remaining services still initialize
        """
        self.name = name
        self.namespace = namespace
        self.stop_on_error = stop_on_error

        self._definitions: dict[str, ServiceDefinition] = {}
        self._services: dict[str, Service] = {}
        self._built = False
        self._running = False

    @classmethod
    def from_config(cls, config: BotConfig) -> Bot:
        """
        Create a bot with every service declared in configuration.

        Args:
            config: Validated bot configuration

        Returns:
            Bot with all services registered but not yet built

        Raises:
            DuplicateNameError: If two services share a name
        """
        bot = cls(
            name=config.name,
            namespace=config.namespace,
            stop_on_error=config.runtime.stop_on_initialize_error,
        )
        for service in config.services:
            bot.register(service.name, service.service, service.params)
        return bot

    def __repr__(self) -> str:
        return f"<Bot {self.name!r} services={list(self._definitions)}>"

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def services(self) -> Mapping[str, Service]:
        """Read-only view of the constructed services, in order."""
        return MappingProxyType(self._services)

    @property
    def definitions(self) -> list[ServiceDefinition]:
        return list(self._definitions.values())

    def register(
        self,
        name: str,
        reference: str | type,
        params: Mapping[str, Any] | None = None,
    ) -> None:
        """
        Add a service definition.

        Args:
            name: Unique service name
            reference: Service class reference (see class docstring)
            params: Keyword parameters for the service constructor

        Raises:
            DuplicateNameError: If the name is already registered
            RegistryError: If the bot has already been built
        """
        if name in self._definitions:
            raise DuplicateNameError(name)
        if self._built:
            raise RegistryError(f"Cannot register {name!r}: bot {self.name!r} is already built")

        self._definitions[name] = ServiceDefinition(name, reference, dict(params or {}))
        log.debug("service_registered", bot=self.name, service=name, reference=str(reference))

    def resolve_reference(self, reference: str) -> str:
        """
        Expand a service reference into a fully qualified dotted path.

        Args:
            reference: Reference as written in the service definition

        Returns:
            Dotted path of the service class

        Raises:
            ValueError: If a local reference is used without a namespace
        """
        if reference.startswith(LOCAL_SENTINEL):
            if not self.namespace:
                raise ValueError(f"bot {self.name!r} has no namespace for local services")
            return f"{self.namespace}.{reference[len(LOCAL_SENTINEL):]}"
        if reference.startswith(VERBATIM_SENTINEL):
            return reference[len(VERBATIM_SENTINEL) :]
        return f"{BUILTIN_NAMESPACE}.{reference}"

    def load_class(self, definition: ServiceDefinition) -> type:
        """
        Load the class a service definition refers to.

        Raises:
            ServiceResolutionError: If the class cannot be loaded
        """
        reference = definition.reference
        if isinstance(reference, type):
            return reference

        resolved: str | None = None
        try:
            resolved = self.resolve_reference(reference)
            module_path, _, attribute = resolved.rpartition(".")
            if not module_path or not attribute:
                raise ValueError("expected a dotted module path ending in a class name")
            module = importlib.import_module(module_path)
            cls = getattr(module, attribute)
        except (ImportError, AttributeError, ValueError) as e:
            raise ServiceResolutionError(definition.name, reference, resolved, str(e)) from e

        if not isinstance(cls, type):
            raise ServiceResolutionError(definition.name, reference, resolved, "not a class")
        return cls

    def build_all(self) -> None:
        """
        Construct every registered service.

        Either every service is constructed and stored, or nothing is: a
        failure leaves the bot without services and no ``initialize`` runs.

        Raises:
            ServiceResolutionError: If a service class cannot be loaded
            ServiceConstructionError: If a service constructor fails
            RegistryError: If the bot was already built
        """
        if self._built:
            raise RegistryError(f"Bot {self.name!r} is already built")

        built: dict[str, Service] = {}
        for definition in self._definitions.values():
            cls = self.load_class(definition)
            try:
                service = cls(**definition.params, name=definition.name, bot=self)
            except Exception as e:
                log.error(
                    "service_construction_failed",
                    bot=self.name,
                    service=definition.name,
                    error=str(e),
                )
                raise ServiceConstructionError(definition.name, str(e)) from e

            if not isinstance(service, Service):
                raise ServiceConstructionError(
                    definition.name, f"{cls.__name__} does not implement the Service interface"
                )
            built[definition.name] = service
            log.debug("service_constructed", bot=self.name, service=definition.name)

        self._services = built
        self._built = True
        log.info("services_built", bot=self.name, count=len(built))

    async def run(self) -> None:
        """
        Build every service and initialize them in declaration order.

        With ``stop_on_error`` the first failure stops startup and the
        services initialized so far are shut down again. Without it the
        failure is logged, later services still initialize, and the bot
        keeps running what did start.

        Raises:
            ServiceResolutionError: If a service class cannot be loaded
            ServiceConstructionError: If a service constructor fails
            ServiceStartupError: If any service failed to initialize
        """
        log.info("bot_starting", bot=self.name, services=list(self._definitions))
        self.build_all()

        failures: dict[str, BaseException] = {}
        initialized: list[Service] = []
        for name, service in self._services.items():
            log.debug("service_initializing", bot=self.name, service=name)
            try:
                with service_context(self.name, name):
                    await service.initialize()
            except Exception as e:
                log.exception("service_initialize_failed", bot=self.name, service=name, error=str(e))
                failures[name] = e
                if self.stop_on_error:
                    break
                continue

            _set_state(service, ServiceState.INITIALIZED)
            initialized.append(service)
            log.info("service_initialized", bot=self.name, service=name)

        if failures and self.stop_on_error:
            await self._shutdown(reversed(initialized))
            raise ServiceStartupError(failures)

        for service in initialized:
            _set_state(service, ServiceState.RUNNING)
        self._running = True

        if failures:
            raise ServiceStartupError(failures)
        log.info("bot_started", bot=self.name)

    async def shutdown_all(self) -> None:
        """Shut down every service in reverse declaration order.

        A failing service is logged and skipped; the rest still shut down.
        """
        log.info("bot_stopping", bot=self.name)
        await self._shutdown(reversed(list(self._services.values())))
        self._running = False
        log.info("bot_stopped", bot=self.name)

    async def _shutdown(self, services: Iterator[Service]) -> None:
        for service in services:
            if getattr(service, "state", None) == ServiceState.SHUT_DOWN:
                continue
            try:
                with service_context(self.name, service.name):
                    await service.shutdown()
            except Exception as e:
                log.exception(
                    "service_shutdown_failed",
                    bot=self.name,
                    service=service.name,
                    error=str(e),
                )
            else:
                log.debug("service_shut_down", bot=self.name, service=service.name)
            _set_state(service, ServiceState.SHUT_DOWN)

    def get_service(self, name: str) -> Service:
        """
        Look up a constructed service by name.

        Raises:
            UnknownServiceError: If no such service exists
        """
        try:
            return self._services[name]
        except KeyError:
            raise UnknownServiceError(name) from None

    def services_with(self, capability: type[T]) -> list[T]:
        """Return every service implementing a capability, in order."""
        return [s for s in self._services.values() if isinstance(s, capability)]


def _set_state(service: Service, state: ServiceState) -> None:
    if isinstance(service, BaseService):
        service.state = state
