"""Container repair for recordings that are not browser playable."""

from .pipeline import (
    ContainerRepairPipeline,
    default_strategies,
)
from .strategies import (
    MetadataToolStrategy,
    RemuxStrategy,
    RepairStrategy,
    StructuralInspectionStrategy,
)

__all__ = [
    "ContainerRepairPipeline",
    "default_strategies",
    "MetadataToolStrategy",
    "RemuxStrategy",
    "RepairStrategy",
    "StructuralInspectionStrategy",
]
