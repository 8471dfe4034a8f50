"""Flow template registry.

The registry maps template keys to loaded :class:`BaseFlow` instances. The
engine queries it by the key stored on a flow instance at the start of every
transition, and resolves ``(template key, task id)`` to a handler through it.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from litestar_flows.exceptions import DefinitionError, FlowTemplateNotFoundError

if TYPE_CHECKING:
    from litestar_flows.core.definition import FlowDefinition
    from litestar_flows.core.protocols import TaskHandler
    from litestar_flows.engine.base import BaseFlow

__all__ = ["FlowRegistry"]

logger = logging.getLogger(__name__)


class FlowRegistry:
    """Registry for storing and retrieving flow templates.

    Attributes:
        _flows: Map of template key to the loaded flow.
    """

    def __init__(self) -> None:
        """Initialize an empty flow registry."""
        self._flows: dict[str, BaseFlow] = {}

    def register(self, flow: type[BaseFlow] | BaseFlow) -> BaseFlow:
        """Load a flow template and register it under its key.

        Passing a class instantiates it, which validates the definition and its
        task table.

        Args:
            flow: The flow class, or an already constructed flow.

        Returns:
            The registered flow instance.

        Raises:
            DefinitionError: If the template is malformed or its key is taken
                by a different template.

        Example:
            >>> registry = FlowRegistry()
            >>> registry.register(WorkOrderFlow)
        """
        instance = flow() if isinstance(flow, type) else flow
        key = str(instance.key)

        existing = self._flows.get(key)
        if existing is not None and type(existing) is not type(instance):
            msg = f"Flow key '{key}' is already registered by {type(existing).__name__}"
            raise DefinitionError([msg])

        self._flows[key] = instance
        logger.debug("Registered flow template %s (%s)", key, type(instance).__name__)
        return instance

    def get_flow(self, key: str) -> BaseFlow:
        """Retrieve a registered flow by template key.

        Raises:
            FlowTemplateNotFoundError: If nothing is registered under ``key``.
        """
        try:
            return self._flows[str(key)]
        except KeyError:
            raise FlowTemplateNotFoundError(str(key)) from None

    def get_definition(self, key: str) -> FlowDefinition:
        """Retrieve the definition of a registered flow."""
        return self.get_flow(key).definition

    def get_handler(self, key: str, task: str) -> TaskHandler:
        """Resolve a task identifier of a template to its bound handler."""
        return self.get_flow(key).get_handler(task)

    def list_definitions(self) -> list[FlowDefinition]:
        """List the definitions of all registered flows, in registration order."""
        return [flow.definition for flow in self._flows.values()]

    def has_flow(self, key: str) -> bool:
        return str(key) in self._flows

    def unregister(self, key: str) -> None:
        """Remove a template from the registry. Unknown keys are ignored."""
        self._flows.pop(str(key), None)

    def __contains__(self, key: object) -> bool:
        return str(key) in self._flows

    def __len__(self) -> int:
        return len(self._flows)
