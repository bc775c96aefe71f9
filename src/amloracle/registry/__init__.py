"""Status registry subsystem."""

from amloracle.registry.status import StatusRegistry

__all__ = ["StatusRegistry"]
