"""Capability registry for managing and discovering invocable capabilities.

The registry provides a central place to register capabilities with their
handlers and metadata, so that prompts can describe what agents may call
and the executor can route parsed actions to the right handler.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Coroutine, Iterable, Optional, Union

logger = logging.getLogger(__name__)

# Handlers can be sync or async, taking a dict of params and returning any result
CapabilityHandler = Union[
    Callable[[dict[str, Any]], Any],
    Callable[[dict[str, Any]], Coroutine[Any, Any, Any]],
]


@dataclass(frozen=True)
class CapabilityDescriptor:
    """What a prompt needs to know about a capability."""

    name: str
    description: str
    params: dict[str, str] = field(default_factory=dict)


@dataclass
class Capability:
    """A registered capability with its handler.

    Attributes:
        name: Unique capability name used in action directives.
        description: Human-readable description shown to agents.
        handler: The function that executes the capability.
        params: Parameter names mapped to short descriptions.
        timeout: Maximum execution time in seconds (None = executor default).
        enabled: Whether the capability is currently available.
    """

    name: str
    description: str
    handler: CapabilityHandler
    params: dict[str, str] = field(default_factory=dict)
    timeout: Optional[float] = 30.0
    enabled: bool = True

    @property
    def descriptor(self) -> CapabilityDescriptor:
        """Get the prompt-facing descriptor of this capability."""
        return CapabilityDescriptor(
            name=self.name,
            description=self.description,
            params=dict(self.params),
        )


@dataclass
class CapabilityRegistry:
    """Registry of capabilities available to agents.

    Example:
        >>> registry = CapabilityRegistry()
        >>> registry.register(Capability(
        ...     name="greet",
        ...     description="Say hello",
        ...     handler=lambda params: f"Hello, {params.get('name', 'World')}!",
        ... ))
        >>> registry.get("greet").name
        'greet'
    """

    _capabilities: dict[str, Capability] = field(default_factory=dict)

    def register(self, capability: Capability) -> None:
        """Register a capability.

        Raises:
            ValueError: If a capability with the same name is already registered.
        """
        if capability.name in self._capabilities:
            raise ValueError(f"Capability '{capability.name}' is already registered")

        self._capabilities[capability.name] = capability
        logger.debug(f"Registered capability: {capability.name}")

    def register_all(self, capabilities: Iterable[Capability]) -> None:
        """Register several capabilities, replacing any with the same name."""
        for capability in capabilities:
            self._capabilities[capability.name] = capability
        logger.debug(f"Registry now holds {len(self._capabilities)} capabilities")

    def unregister(self, name: str) -> bool:
        """Remove a capability.

        Returns:
            True if the capability was removed, False if it wasn't registered.
        """
        if self._capabilities.pop(name, None) is None:
            return False
        logger.debug(f"Unregistered capability: {name}")
        return True

    def get(self, name: str) -> Optional[Capability]:
        """Get a capability by name."""
        return self._capabilities.get(name)

    def get_enabled(self, name: str) -> Optional[Capability]:
        """Get a capability by name, only if it's enabled."""
        capability = self._capabilities.get(name)
        if capability and capability.enabled:
            return capability
        return None

    def has(self, name: str) -> bool:
        """Check if a capability is registered."""
        return name in self._capabilities

    def enable(self, name: str) -> bool:
        """Enable a capability. Returns False if it is not registered."""
        capability = self._capabilities.get(name)
        if capability:
            capability.enabled = True
            return True
        return False

    def disable(self, name: str) -> bool:
        """Disable a capability. Returns False if it is not registered."""
        capability = self._capabilities.get(name)
        if capability:
            capability.enabled = False
            return True
        return False

    def get_capabilities(self) -> list[CapabilityDescriptor]:
        """Get descriptors of all enabled capabilities, in registration order."""
        return [c.descriptor for c in self._capabilities.values() if c.enabled]

    def list_capabilities(self, enabled_only: bool = True) -> list[str]:
        """List registered capability names."""
        if enabled_only:
            return [name for name, c in self._capabilities.items() if c.enabled]
        return list(self._capabilities.keys())

    def clear(self) -> None:
        """Remove all registered capabilities."""
        self._capabilities.clear()
        logger.debug("Cleared all capabilities from registry")

    def __len__(self) -> int:
        return len(self._capabilities)

    def __contains__(self, name: str) -> bool:
        return name in self._capabilities


def create_capability(
    name: str,
    description: str,
    handler: CapabilityHandler,
    params: Optional[dict[str, str]] = None,
    timeout: Optional[float] = 30.0,
) -> Capability:
    """Factory function to create a Capability.

    Args:
        name: Capability name.
        description: Capability description.
        handler: Function that executes the capability.
        params: Parameter names mapped to descriptions.
        timeout: Execution timeout in seconds.

    Returns:
        A configured Capability instance.
    """
    return Capability(
        name=name,
        description=description,
        handler=handler,
        params=dict(params or {}),
        timeout=timeout,
    )
