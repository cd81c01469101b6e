import dataclasses
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, NamedTuple, Optional, Tuple, Union

from memsim.memory.blocks import BlockPool, MemoryBlock
from memsim.memory.conf import AllocatorConfig
from memsim.memory.strategies import (
    AllocationStrategy,
    PlacementStrategy,
    default_strategies,
)

logger = logging.getLogger(__name__)


class AllocationError(Enum):
    """Reasons an allocation or compaction can fail"""

    DUPLICATE_OWNER = "duplicate_owner"
    NO_SUITABLE_BLOCK = "no_suitable_block"
    ALLOCATION_FAILURE = "allocation_failure"


class ReleaseError(Enum):
    """Reasons a release can fail"""

    NOT_FOUND = "not_found"


@dataclass
class AllocationResult:
    """Represents the result of an allocation attempt"""

    success: bool
    owner: Optional[str] = None
    address: Optional[int] = None
    actual_size: Optional[int] = None
    error: Optional[AllocationError] = None
    error_message: Optional[str] = None
    strategy_info: Optional[Dict[str, Any]] = None


@dataclass
class FreeResult:
    """Represents the result of a release attempt"""

    success: bool
    owner: Optional[str] = None
    address: Optional[int] = None
    freed_size: Optional[int] = None
    coalesced: bool = False
    coalesced_size: Optional[int] = None
    error: Optional[ReleaseError] = None
    error_message: Optional[str] = None


@dataclass
class CompactResult:
    """Represents the result of a compaction"""

    success: bool
    moved_blocks: int = 0
    moved_bytes: int = 0
    free_size: int = 0
    error: Optional[AllocationError] = None
    error_message: Optional[str] = None


class StatusEntry(NamedTuple):
    """One line of the status report; ``end`` is the last address, inclusive.

    ``allocated`` tells a block owned by "Unused" apart from a free block.
    """

    start: int
    end: int
    label: str
    allocated: bool


class ContiguousAllocator:
    """Simulated contiguous allocator over a single address space.

    The allocator owns its block pool outright. Callers only see result
    values, status tuples and block copies, never the live blocks.

    Example:
        >>> allocator = ContiguousAllocator(100)
        >>> allocator.allocate("P1", 40, "F").address
        0
        >>> allocator.status()
        [StatusEntry(start=0, end=39, label='P1', allocated=True), StatusEntry(start=40, end=99, label='Unused', allocated=False)]
    """

    def __init__(self, total_size: Optional[int] = None, config: Optional[AllocatorConfig] = None):
        if config is None:
            config = AllocatorConfig() if total_size is None else AllocatorConfig(total_size=total_size)
        elif total_size is not None and total_size != config.total_size:
            config = config.model_copy(update={"total_size": total_size})
        self.config = config
        self.total_size = config.total_size
        self.strategies: Dict[AllocationStrategy, PlacementStrategy] = default_strategies()
        self.pool = BlockPool(self.total_size, capture_trace=config.capture_trace)
        self._reset_statistics()

    def _reset_statistics(self):
        self.allocation_count = 0
        self.failed_allocation_count = 0
        self.free_count = 0
        self.failed_free_count = 0
        self.compaction_count = 0
        self.total_allocated = 0
        self.total_freed = 0
        self.strategy_usage: Dict[str, int] = {member.name: 0 for member in AllocationStrategy}

    def _check_invariants(self):
        if self.config.validate_after_mutation:
            self.pool.validate()

    def resolve_strategy(
        self, strategy: Union[None, str, AllocationStrategy]
    ) -> PlacementStrategy:
        if strategy is None:
            strategy = self.config.default_strategy
        elif not isinstance(strategy, AllocationStrategy):
            if not isinstance(strategy, str):
                raise TypeError(f"Unsupported strategy {strategy!r}")
            strategy = AllocationStrategy.parse(strategy)
        return self.strategies[strategy]

    @property
    def blocks(self) -> Tuple[MemoryBlock, ...]:
        """Snapshot copies of the blocks in address order"""
        return tuple(dataclasses.replace(block) for block in self.pool)

    def allocate(
        self,
        owner: str,
        size: int,
        strategy: Union[None, str, AllocationStrategy] = None,
    ) -> AllocationResult:
        """
        Allocate ``size`` bytes to ``owner`` with the given placement strategy.

        Args:
                owner (str): Non-empty label, unique among live allocations.
                size (int): Number of bytes, must be positive.
                strategy: An AllocationStrategy, its letter, or None for the configured default.

        Returns:
                AllocationResult: ``success`` is False with ``error`` set when the owner is
                already in use, when no free block is large enough, or when the block
                record could not be created. The pool is untouched in those cases.
        """
        if not owner:
            raise ValueError("Owner label must not be empty")
        if size <= 0:
            raise ValueError(f"Allocation size must be > 0, got {size}")
        placement = self.resolve_strategy(strategy)
        strategy_info = {"algorithm": placement.strategy.name.lower(), "requested": size}

        if owner in self.pool.owners:
            return self._reject(
                owner,
                AllocationError.DUPLICATE_OWNER,
                f"Process '{owner}' already has allocated memory",
                strategy_info,
            )

        selected = placement.select(self.pool, size)
        if selected is None:
            return self._reject(
                owner,
                AllocationError.NO_SUITABLE_BLOCK,
                f"Not enough memory available for process '{owner}'",
                strategy_info,
            )

        strategy_info["selected_block"] = (selected.start, selected.size)
        strategy_info["remaining_in_block"] = selected.size - size
        try:
            block = self.pool.splice(selected, size, owner)
        except MemoryError as e:
            return self._reject(
                owner,
                AllocationError.ALLOCATION_FAILURE,
                f"Failed to allocate memory for the new process block: {e}",
                strategy_info,
            )
        self._check_invariants()

        self.allocation_count += 1
        self.total_allocated += size
        self.strategy_usage[placement.strategy.name] += 1
        logger.debug(
            f"Allocated {size} bytes at {block.start} to '{owner}' using {placement.name}"
        )
        return AllocationResult(
            success=True,
            owner=owner,
            address=block.start,
            actual_size=block.size,
            strategy_info=strategy_info,
        )

    def _reject(
        self,
        owner: str,
        error: AllocationError,
        message: str,
        strategy_info: Dict[str, Any],
    ) -> AllocationResult:
        self.failed_allocation_count += 1
        logger.warning(f"Allocation for '{owner}' failed: {message}")
        return AllocationResult(
            success=False,
            owner=owner,
            error=error,
            error_message=message,
            strategy_info=strategy_info,
        )

    def can_allocate(
        self, size: int, strategy: Union[None, str, AllocationStrategy] = None
    ) -> bool:
        """Check if allocation is possible without actually allocating"""
        return self.resolve_strategy(strategy).can_allocate(self.pool, size)

    def release(self, owner: str) -> FreeResult:
        """
        Release the block held by ``owner`` and coalesce it with free neighbours.

        Args:
                owner (str): Label of a live allocation.

        Returns:
                FreeResult: ``success`` is False with ``ReleaseError.NOT_FOUND`` when no
                allocated block carries that label.
        """
        block = self.pool.get_block(owner)
        if block is None:
            self.failed_free_count += 1
            message = f"Process '{owner}' not found in allocated memory."
            logger.warning(f"Release failed: {message}")
            return FreeResult(
                success=False,
                owner=owner,
                error=ReleaseError.NOT_FOUND,
                error_message=message,
            )

        address, freed_size = block.start, block.size
        merged = self.pool.release(block)
        self._check_invariants()

        self.free_count += 1
        self.total_freed += freed_size
        coalesced = merged.size > freed_size
        logger.debug(f"Released {freed_size} bytes at {address} held by '{owner}'")
        return FreeResult(
            success=True,
            owner=owner,
            address=address,
            freed_size=freed_size,
            coalesced=coalesced,
            coalesced_size=merged.size if coalesced else None,
        )

    def compact(self) -> CompactResult:
        """
        Slide every allocated block down to the low end of the address space.

        Allocated blocks keep their relative order, size and owner, and are laid
        out end to end from address 0. All free space becomes one trailing free
        block, or none when the space is fully allocated. The replacement
        sequence is built aside and swapped in only once complete.

        Returns:
                CompactResult: Counts of moved blocks and bytes, and the trailing free size.
        """
        cursor = 0
        free_size = 0
        moved_blocks = 0
        moved_bytes = 0
        compacted: List[MemoryBlock] = []
        try:
            for block in self.pool:
                if not block.allocated:
                    free_size += block.size
                    continue
                if block.start != cursor:
                    moved_blocks += 1
                    moved_bytes += block.size
                compacted.append(
                    MemoryBlock(start=cursor, size=block.size, owner=block.owner, allocated=True)
                )
                cursor += block.size
            if free_size > 0:
                compacted.append(MemoryBlock(start=cursor, size=free_size))
        except MemoryError as e:
            message = f"Failed to allocate memory during compaction: {e}"
            logger.error(message)
            return CompactResult(
                success=False,
                error=AllocationError.ALLOCATION_FAILURE,
                error_message=message,
            )

        self.pool.rebuild(compacted)
        self.pool.record_trace(
            "compact", moved_blocks=moved_blocks, moved_bytes=moved_bytes, free_size=free_size
        )
        self._check_invariants()

        self.compaction_count += 1
        logger.debug(
            f"Compaction moved {moved_blocks} blocks ({moved_bytes} bytes), "
            f"{free_size} bytes free at {cursor}"
        )
        return CompactResult(
            success=True,
            moved_blocks=moved_blocks,
            moved_bytes=moved_bytes,
            free_size=free_size,
        )

    def status(self) -> List[StatusEntry]:
        """Report every block in address order as ``(start, last address, label, allocated)``"""
        return [
            StatusEntry(block.start, block.last_addr, block.label, block.allocated)
            for block in self.pool
        ]

    def format_status(self) -> str:
        """Render the status report as printed by the command shell"""
        lines = ["", "Memory Status:"]
        for block in self.pool:
            if block.allocated:
                lines.append(f"Addresses [{block.start}:{block.last_addr}] Process '{block.owner}'")
            else:
                lines.append(f"Addresses [{block.start}:{block.last_addr}] Unused")
        lines.append(f"Total memory size: {self.total_size} bytes")
        return "\n".join(lines) + "\n"

    def get_statistics(self) -> Dict[str, Any]:
        """Get allocator statistics"""
        return {
            "allocation_count": self.allocation_count,
            "failed_allocation_count": self.failed_allocation_count,
            "free_count": self.free_count,
            "failed_free_count": self.failed_free_count,
            "compaction_count": self.compaction_count,
            "total_allocated": self.total_allocated,
            "total_freed": self.total_freed,
            "currently_allocated": self.total_allocated - self.total_freed,
            "active_blocks": len(self.pool.owners),
            "strategy_usage": dict(self.strategy_usage),
        }

    def get_memory_info(self) -> Dict[str, Any]:
        """Get current memory status information"""
        return {
            "total_size": self.total_size,
            "default_strategy": self.config.default_strategy.name,
            "memory_summary": self.pool.get_memory_summary(),
            "statistics": self.get_statistics(),
            "blocks": [block.to_dict() for block in self.pool],
        }

    def reset(self):
        """Reset the address space to a single free block"""
        self.pool = BlockPool(self.total_size, capture_trace=self.config.capture_trace)
        self._reset_statistics()
