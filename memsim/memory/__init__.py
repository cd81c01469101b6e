from .blocks import TraceInfo, MemoryBlock, BlockPool, PoolCorruptionError, UNUSED
from .strategies import (
    AllocationStrategy,
    PlacementStrategy,
    FirstFitStrategy,
    BestFitStrategy,
    WorstFitStrategy,
)
from .conf import AllocatorConfig, RequestCommand, ReleaseCommand
from .allocator import (
    ContiguousAllocator,
    AllocationError,
    ReleaseError,
    AllocationResult,
    FreeResult,
    CompactResult,
    StatusEntry,
)

__all__ = [
    "TraceInfo",
    "MemoryBlock",
    "BlockPool",
    "PoolCorruptionError",
    "UNUSED",
    "AllocationStrategy",
    "PlacementStrategy",
    "FirstFitStrategy",
    "BestFitStrategy",
    "WorstFitStrategy",
    "AllocatorConfig",
    "RequestCommand",
    "ReleaseCommand",
    "ContiguousAllocator",
    "AllocationError",
    "ReleaseError",
    "AllocationResult",
    "FreeResult",
    "CompactResult",
    "StatusEntry",
]
