"""Tests for the Bot service registry."""

from __future__ import annotations

import gc
from typing import Any

import pytest
import structlog

from chat_backbone.config.schema import BotConfig, RuntimeConfig, ServiceConfig
from chat_backbone.core.bot import BUILTIN_NAMESPACE, Bot
from chat_backbone.core.service import BaseService, ServiceState
from chat_backbone.errors import (
    DuplicateNameError,
    RegistryError,
    ServiceConstructionError,
    ServiceResolutionError,
    ServiceStartupError,
    UnknownServiceError,
)
from chat_backbone.interfaces.capabilities import Chat, ChatConsumer
from chat_backbone.services.consumers import Echo
from chat_backbone.services.memory import MemoryChat


class Recorder(BaseService):
    """Service that records lifecycle calls into a shared journal."""

    def __init__(
        self,
        *,
        journal: list[str],
        fail_initialize: bool = False,
        fail_shutdown: bool = False,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.journal = journal
        self.fail_initialize = fail_initialize
        self.fail_shutdown = fail_shutdown
        journal.append(f"construct:{self.name}")

    async def initialize(self) -> None:
        self.journal.append(f"initialize:{self.name}")
        if self.fail_initialize:
            raise RuntimeError(f"{self.name} cannot start")

    async def shutdown(self) -> None:
        self.journal.append(f"shutdown:{self.name}")
        if self.fail_shutdown:
            raise RuntimeError(f"{self.name} cannot stop")


class ContextRecorder(BaseService):
    """Service that records the log context it runs its lifecycle in."""

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.contexts: list[dict[str, Any]] = []

    async def initialize(self) -> None:
        self.contexts.append(structlog.contextvars.get_contextvars())

    async def shutdown(self) -> None:
        self.contexts.append(structlog.contextvars.get_contextvars())


class ExplodingService(BaseService):
    """Service whose constructor fails."""

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        raise RuntimeError("no config")


class NotAService:
    """Class that lacks the Service interface."""

    def __init__(self, **kwargs: Any) -> None:
        pass


@pytest.fixture
def journal() -> list[str]:
    """Return a shared lifecycle journal."""
    return []


class TestRegister:
    """Tests for service registration."""

    def test_register_keeps_order(self, bot: Bot, journal: list[str]) -> None:
        """Test definitions keep their registration order."""
        for name in ("c", "a", "b"):
            bot.register(name, Recorder, {"journal": journal})

        assert [d.name for d in bot.definitions] == ["c", "a", "b"]

    def test_duplicate_name_rejected(self, bot: Bot, journal: list[str]) -> None:
        """Test registering a name twice fails."""
        bot.register("a", Recorder, {"journal": journal})

        with pytest.raises(DuplicateNameError, match="'a'"):
            bot.register("a", Recorder, {"journal": journal})

    def test_register_after_build_rejected(self, bot: Bot, journal: list[str]) -> None:
        """Test the registry is closed once built."""
        bot.register("a", Recorder, {"journal": journal})
        bot.build_all()

        with pytest.raises(RegistryError):
            bot.register("b", Recorder, {"journal": journal})


class TestResolution:
    """Tests for the three-way service reference rule."""

    def test_builtin_namespace(self, bot: Bot) -> None:
        """Test bare references resolve in the built-in namespace."""
        assert bot.resolve_reference("MemoryChat") == f"{BUILTIN_NAMESPACE}.MemoryChat"

    def test_verbatim_reference(self, bot: Bot) -> None:
        """Test '=' references are used as written."""
        assert bot.resolve_reference("=pkg.mod.Thing") == "pkg.mod.Thing"

    def test_local_reference(self) -> None:
        """Test '.' references resolve in the bot's namespace."""
        bot = Bot(namespace="mybot.services")
        assert bot.resolve_reference(".Weather") == "mybot.services.Weather"

    def test_local_reference_without_namespace(self, bot: Bot) -> None:
        """Test '.' references need a namespace."""
        with pytest.raises(ValueError, match="namespace"):
            bot.resolve_reference(".Weather")

    def test_builds_every_kind_of_reference(self) -> None:
        """Test built-in, verbatim, local and class references all load."""
        bot = Bot(namespace="chat_backbone.services.consumers")
        bot.register("chat", "MemoryChat")
        bot.register("direct", "=chat_backbone.services.routing.DirectChat", {"chat": "chat"})
        bot.register("echo", ".Echo", {"chat": "chat"})
        bot.register("log", Echo, {"chat": "chat"})

        bot.build_all()

        assert isinstance(bot.get_service("chat"), MemoryChat)
        assert type(bot.get_service("direct")).__name__ == "DirectChat"
        assert isinstance(bot.get_service("echo"), Echo)
        assert isinstance(bot.get_service("log"), Echo)

    def test_unknown_module(self, bot: Bot) -> None:
        """Test a missing module is a resolution error."""
        bot.register("x", "=no_such_package.Thing")

        with pytest.raises(ServiceResolutionError) as exc_info:
            bot.build_all()

        assert exc_info.value.name == "x"
        assert exc_info.value.resolved == "no_such_package.Thing"

    def test_unknown_class(self, bot: Bot) -> None:
        """Test a missing class in the built-in namespace is a resolution error."""
        bot.register("x", "NoSuchService")

        with pytest.raises(ServiceResolutionError, match="NoSuchService"):
            bot.build_all()

    def test_not_a_class(self, bot: Bot) -> None:
        """Test a reference to a non-class is rejected."""
        bot.register("x", "=chat_backbone.core.bot.BUILTIN_NAMESPACE")

        with pytest.raises(ServiceResolutionError, match="not a class"):
            bot.build_all()


class TestBuildAll:
    """Tests for build_all."""

    def test_services_receive_name_and_bot(self, bot: Bot, journal: list[str]) -> None:
        """Test each service is built with its name and a bot reference."""
        bot.register("a", Recorder, {"journal": journal})

        bot.build_all()

        service = bot.get_service("a")
        assert service.name == "a"
        assert service.bot is bot
        assert isinstance(service, Recorder)
        assert service.state == ServiceState.CONSTRUCTED

    def test_construction_failure_is_fatal(self, bot: Bot, journal: list[str]) -> None:
        """Test a failing constructor leaves no services behind."""
        bot.register("a", Recorder, {"journal": journal})
        bot.register("boom", ExplodingService)

        with pytest.raises(ServiceConstructionError, match="boom"):
            bot.build_all()

        assert dict(bot.services) == {}

    def test_resolution_failure_is_fatal(self, bot: Bot, journal: list[str]) -> None:
        """Test a failing reference leaves no services behind."""
        bot.register("a", Recorder, {"journal": journal})
        bot.register("b", "=missing.module.Service")

        with pytest.raises(ServiceResolutionError):
            bot.build_all()

        assert dict(bot.services) == {}

    def test_unknown_parameter_is_construction_error(self, bot: Bot) -> None:
        """Test a misspelt parameter fails the build."""
        bot.register("chat", MemoryChat, {"nicknam": "typo"})

        with pytest.raises(ServiceConstructionError, match="nicknam"):
            bot.build_all()

    def test_non_service_rejected(self, bot: Bot) -> None:
        """Test a class without the Service interface is rejected."""
        bot.register("x", NotAService)

        with pytest.raises(ServiceConstructionError, match="Service interface"):
            bot.build_all()

    def test_build_twice_rejected(self, bot: Bot) -> None:
        """Test build_all runs once."""
        bot.build_all()

        with pytest.raises(RegistryError):
            bot.build_all()

    @pytest.mark.asyncio
    async def test_failed_build_runs_no_initialize(self, bot: Bot, journal: list[str]) -> None:
        """Test run performs no initialize when the build fails."""
        bot.register("a", Recorder, {"journal": journal})
        bot.register("boom", ExplodingService)

        with pytest.raises(ServiceConstructionError):
            await bot.run()

        assert not any(entry.startswith("initialize") for entry in journal)
        assert not bot.is_running


class TestRun:
    """Tests for run and shutdown_all."""

    @pytest.mark.asyncio
    async def test_initialize_in_order(self, bot: Bot, journal: list[str]) -> None:
        """Test services are constructed, then initialized, in order."""
        for name in ("a", "b", "c"):
            bot.register(name, Recorder, {"journal": journal})

        await bot.run()

        assert journal == [
            "construct:a",
            "construct:b",
            "construct:c",
            "initialize:a",
            "initialize:b",
            "initialize:c",
        ]
        assert bot.is_running
        assert all(s.state == ServiceState.RUNNING for s in bot.services.values())  # type: ignore[attr-defined]

    @pytest.mark.asyncio
    async def test_stop_on_error(self, bot: Bot, journal: list[str]) -> None:
        """Test the first failure stops startup and unwinds started services."""
        bot.register("a", Recorder, {"journal": journal})
        bot.register("b", Recorder, {"journal": journal, "fail_initialize": True})
        bot.register("c", Recorder, {"journal": journal})

        with pytest.raises(ServiceStartupError) as exc_info:
            await bot.run()

        assert list(exc_info.value.failures) == ["b"]
        assert "initialize:c" not in journal
        assert journal[-1] == "shutdown:a"
        assert not bot.is_running

    @pytest.mark.asyncio
    async def test_continue_on_error(self, journal: list[str]) -> None:
        """Test later services still start when stop_on_error is off."""
        bot = Bot(stop_on_error=False)
        bot.register("a", Recorder, {"journal": journal, "fail_initialize": True})
        bot.register("b", Recorder, {"journal": journal})
        bot.register("c", Recorder, {"journal": journal, "fail_initialize": True})

        with pytest.raises(ServiceStartupError) as exc_info:
            await bot.run()

        assert list(exc_info.value.failures) == ["a", "c"]
        assert "initialize:b" in journal
        assert bot.get_service("b").state == ServiceState.RUNNING  # type: ignore[attr-defined]
        assert bot.get_service("a").state == ServiceState.CONSTRUCTED  # type: ignore[attr-defined]
        assert bot.is_running

    @pytest.mark.asyncio
    async def test_shutdown_in_reverse_order(self, bot: Bot, journal: list[str]) -> None:
        """Test shutdown_all runs last-registered first."""
        for name in ("a", "b", "c"):
            bot.register(name, Recorder, {"journal": journal})
        await bot.run()
        journal.clear()

        await bot.shutdown_all()

        assert journal == ["shutdown:c", "shutdown:b", "shutdown:a"]
        assert all(s.state == ServiceState.SHUT_DOWN for s in bot.services.values())  # type: ignore[attr-defined]
        assert not bot.is_running

    @pytest.mark.asyncio
    async def test_shutdown_failure_is_isolated(self, bot: Bot, journal: list[str]) -> None:
        """Test one failing shutdown does not block the rest."""
        bot.register("a", Recorder, {"journal": journal})
        bot.register("b", Recorder, {"journal": journal, "fail_shutdown": True})
        bot.register("c", Recorder, {"journal": journal})
        await bot.run()
        journal.clear()

        await bot.shutdown_all()

        assert journal == ["shutdown:c", "shutdown:b", "shutdown:a"]

    @pytest.mark.asyncio
    async def test_shutdown_is_idempotent(self, bot: Bot, journal: list[str]) -> None:
        """Test services are shut down only once."""
        bot.register("a", Recorder, {"journal": journal})
        await bot.run()
        await bot.shutdown_all()
        await bot.shutdown_all()

        assert journal.count("shutdown:a") == 1


class TestLogContext:
    """Tests for the log context bound around service lifecycles."""

    @pytest.mark.asyncio
    async def test_lifecycle_runs_with_service_context(self, bot: Bot) -> None:
        """Test initialize and shutdown see the bot and service names."""
        bot.register("chat", ContextRecorder)
        await bot.run()
        await bot.shutdown_all()

        service = bot.get_service("chat")
        assert isinstance(service, ContextRecorder)
        assert len(service.contexts) == 2
        for context in service.contexts:
            assert context["bot"] == "test-bot"
            assert context["service"] == "chat"

    @pytest.mark.asyncio
    async def test_context_is_restored_afterwards(self, bot: Bot) -> None:
        """Test the service names do not leak past the lifecycle call."""
        bot.register("chat", ContextRecorder)
        with structlog.contextvars.bound_contextvars(bot="outer"):
            await bot.run()
            assert structlog.contextvars.get_contextvars()["bot"] == "outer"
            assert "service" not in structlog.contextvars.get_contextvars()
        await bot.shutdown_all()

        assert "service" not in structlog.contextvars.get_contextvars()


class TestLookup:
    """Tests for service lookup."""

    def test_unknown_service(self, bot: Bot) -> None:
        """Test looking up a missing service raises."""
        with pytest.raises(UnknownServiceError, match="ghost"):
            bot.get_service("ghost")

    def test_unknown_service_is_key_error(self, bot: Bot) -> None:
        """Test the lookup error can be handled as a KeyError."""
        with pytest.raises(KeyError):
            bot.get_service("ghost")

    def test_services_with_capability(self, bot: Bot) -> None:
        """Test filtering services by capability."""
        bot.register("chat", "MemoryChat")
        bot.register("echo", "Echo", {"chat": "chat"})
        bot.build_all()

        assert [s.name for s in bot.services_with(Chat)] == ["chat"]  # type: ignore[attr-defined]
        assert [s.name for s in bot.services_with(ChatConsumer)] == ["echo"]  # type: ignore[attr-defined]

    def test_services_view_is_read_only(self, bot: Bot) -> None:
        """Test the services mapping cannot be modified."""
        with pytest.raises(TypeError):
            bot.services["x"] = object()  # type: ignore[index]


class TestBackReference:
    """Tests for the weak service-to-bot reference."""

    def test_bot_is_not_kept_alive(self, journal: list[str]) -> None:
        """Test services do not keep their bot alive."""
        bot = Bot()
        bot.register("a", Recorder, {"journal": journal})
        bot.build_all()
        service = bot.get_service("a")

        del bot
        gc.collect()

        with pytest.raises(RuntimeError, match="no longer exists"):
            _ = service.bot


class TestFromConfig:
    """Tests for building a bot from configuration."""

    def test_from_config(self) -> None:
        """Test services and runtime settings come from configuration."""
        config = BotConfig(
            name="helper",
            namespace="mybot.services",
            services=[
                ServiceConfig(name="chat", service="MemoryChat", params={"nickname": "h"}),
                ServiceConfig(name="echo", service="Echo", params={"chat": "chat"}),
            ],
            runtime=RuntimeConfig(stop_on_initialize_error=False),
        )

        bot = Bot.from_config(config)

        assert bot.name == "helper"
        assert bot.namespace == "mybot.services"
        assert bot.stop_on_error is False
        assert [d.name for d in bot.definitions] == ["chat", "echo"]

    def test_from_config_duplicate_names(self) -> None:
        """Test duplicate names in configuration are rejected."""
        config = BotConfig(
            services=[
                ServiceConfig(name="chat", service="MemoryChat"),
                ServiceConfig(name="chat", service="MemoryChat"),
            ],
        )

        with pytest.raises(DuplicateNameError):
            Bot.from_config(config)
