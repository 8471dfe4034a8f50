"""Litestar plugin for flow integration.

This module provides the FlowPlugin, which makes a FlowRegistry and a
FlowEngine available to a Litestar application through dependency injection.
The plugin registers no routes; the host application's handlers call the
engine with the caller identity they have already authenticated.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from litestar.di import Provide
from litestar.exceptions import ImproperlyConfiguredException
from litestar.plugins import InitPluginProtocol

from litestar_flows.config import FlowPluginConfig
from litestar_flows.db.engine import FlowEngine
from litestar_flows.engine.registry import FlowRegistry

if TYPE_CHECKING:
    from litestar.config.app import AppConfig

__all__ = ["FlowPlugin"]

logger = logging.getLogger(__name__)


class FlowPlugin(InitPluginProtocol):
    """Litestar plugin for flow management.

    Example:
        Wiring the engine to an advanced-alchemy session maker::

            from litestar import Litestar, post
            from litestar_flows import ActorContext, FlowEngine, FlowPlugin, FlowPluginConfig, WorkOrderFlow


            @post("/work-orders/{flow_id:uuid}/steps/{step:str}")
            async def run_step(flow_id: UUID, step: str, request: Request, flow_engine: FlowEngine) -> dict:
                actor = ActorContext(identity=request.user.id, roles=frozenset(request.user.roles))
                flow = await flow_engine.transition(flow_id, step, actor)
                return {"state": flow.state}


            app = Litestar(
                route_handlers=[run_step],
                plugins=[
                    FlowPlugin(
                        config=FlowPluginConfig(
                            session_maker=alchemy_config.create_session_maker(),
                            auto_register_flows=[WorkOrderFlow],
                        )
                    )
                ],
            )
    """

    __slots__ = ("_config", "_engine", "_registry")

    def __init__(self, config: FlowPluginConfig | None = None) -> None:
        """Initialize the plugin.

        Args:
            config: Optional configuration for the plugin.
        """
        self._config = config or FlowPluginConfig()
        self._registry: FlowRegistry | None = None
        self._engine: FlowEngine | None = None

    @property
    def registry(self) -> FlowRegistry:
        """Get the flow registry.

        Raises:
            RuntimeError: If accessed before plugin initialization.
        """
        if self._registry is None:
            msg = "FlowPlugin has not been initialized. Access registry after app startup."
            raise RuntimeError(msg)
        return self._registry

    @property
    def engine(self) -> FlowEngine:
        """Get the flow engine.

        Raises:
            RuntimeError: If accessed before plugin initialization.
        """
        if self._engine is None:
            msg = "FlowPlugin has not been initialized. Access engine after app startup."
            raise RuntimeError(msg)
        return self._engine

    def on_app_init(self, app_config: AppConfig) -> AppConfig:
        """Build the registry and engine and register their providers.

        Args:
            app_config: The Litestar application configuration.

        Returns:
            The modified application configuration.

        Raises:
            ImproperlyConfiguredException: If neither an engine nor a session
                maker was configured.
        """
        config = self._config
        if config.registry is not None:
            registry = config.registry
        elif config.engine is not None:
            registry = config.engine.registry
        else:
            registry = FlowRegistry()

        for flow_class in config.auto_register_flows:
            registry.register(flow_class)

        if config.engine is not None:
            engine = config.engine
        elif config.session_maker is not None:
            engine = FlowEngine(
                registry=registry,
                session_maker=config.session_maker,
                config=config.engine_config,
                event_bus=config.event_bus,
            )
        else:
            msg = "FlowPluginConfig requires either 'engine' or 'session_maker'"
            raise ImproperlyConfiguredException(msg)

        self._registry = registry
        self._engine = engine
        logger.debug("FlowPlugin initialized with templates %s", [d.key for d in registry.list_definitions()])

        def provide_registry() -> FlowRegistry:
            return registry

        def provide_engine() -> FlowEngine:
            return engine

        app_config.dependencies[config.dependency_key_registry] = Provide(provide_registry, sync_to_thread=False)
        app_config.dependencies[config.dependency_key_engine] = Provide(provide_engine, sync_to_thread=False)
        return app_config
