"""Adapter registry: maps adapter type names to adapter classes.

Source table entries name their poll and webhook adapters by type; the
registry resolves those names and checks the adapter is the right kind
(pull or push) for the slot it is used in.
"""

from __future__ import annotations

from feedagator.ingestion.adapter import SourceAdapter

_REGISTRY: dict[str, type[SourceAdapter]] = {}


def register_adapter(type_name: str, cls: type[SourceAdapter]) -> None:
    """Register an adapter class under a type name.

    Re-registering the same class is a no-op; claiming a taken name for a
    different class raises ValueError.
    """
    existing = _REGISTRY.get(type_name)
    if existing is not None and existing is not cls:
        raise ValueError(
            f"Adapter type '{type_name}' already registered to {existing.__name__}"
        )
    _REGISTRY[type_name] = cls


def get_adapter_class(
    type_name: str, kind: type[SourceAdapter] = SourceAdapter
) -> type[SourceAdapter] | None:
    """Look up an adapter class, or None if unknown or not a ``kind``."""
    cls = _REGISTRY.get(type_name)
    if cls is None or not issubclass(cls, kind):
        return None
    return cls


def registered_types(kind: type[SourceAdapter] = SourceAdapter) -> list[str]:
    """Sorted type names whose adapters are a ``kind``."""
    return sorted(name for name, cls in _REGISTRY.items() if issubclass(cls, kind))
