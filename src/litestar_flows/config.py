"""Configuration for the flow engine and its Litestar plugin."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from litestar_flows.db.engine import FlowEngine
    from litestar_flows.engine.base import BaseFlow
    from litestar_flows.engine.registry import FlowRegistry

__all__ = ["FlowEngineConfig", "FlowPluginConfig"]


@dataclass
class FlowEngineConfig:
    """Runtime options of :class:`~litestar_flows.db.engine.FlowEngine`.

    Attributes:
        lock_for_update: Read the instance with ``SELECT ... FOR UPDATE`` so
            concurrent transitions on it queue up instead of failing at write
            time. The optimistic version check is always applied.
        transition_timeout: Seconds a single transition may take before it is
            rolled back and reported as timed out. ``None`` disables the deadline.
        record_history: Append a transition record for every committed step.
        operator_defaults_to_actor: Record the acting identity as operator when
            the caller does not supply one.

    Example:
        >>> config = FlowEngineConfig(transition_timeout=5.0)
    """

    lock_for_update: bool = True
    transition_timeout: float | None = None
    record_history: bool = True
    operator_defaults_to_actor: bool = True


@dataclass
class FlowPluginConfig:
    """Configuration for the FlowPlugin.

    Attributes:
        session_maker: Factory for the sessions transitions run in. Required
            unless ``engine`` is given.
        registry: Optional pre-configured FlowRegistry. If not provided, a new
            one will be created.
        engine: Optional pre-configured FlowEngine.
        engine_config: Options for the engine the plugin builds.
        event_bus: Optional event sink passed to the engine the plugin builds.
        auto_register_flows: Flow classes to register on app init.
        dependency_key_registry: Injection key of the FlowRegistry.
        dependency_key_engine: Injection key of the FlowEngine.
    """

    session_maker: async_sessionmaker[AsyncSession] | None = None
    registry: FlowRegistry | None = None
    engine: FlowEngine | None = None
    engine_config: FlowEngineConfig = field(default_factory=FlowEngineConfig)
    event_bus: Any | None = None
    auto_register_flows: list[type[BaseFlow]] = field(default_factory=list)
    dependency_key_registry: str = "flow_registry"
    dependency_key_engine: str = "flow_engine"
