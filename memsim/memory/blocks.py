from __future__ import annotations
import bisect
import logging
import time
from typing import Any, Optional, Dict, Iterator, List
from sortedcontainers import SortedKeyList
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

UNUSED = "Unused"


class PoolCorruptionError(RuntimeError):
    """Raised when the block sequence no longer describes the address space"""


@dataclass(slots=True)
class TraceInfo:
    """Represents one recorded operation on the block pool"""

    timestamp_ns: int
    operation: str  # "create", "alloc", "split", "free", "coalesce", "compact"
    additional_info: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def capture(cls, operation: str, **additional_info: Any) -> "TraceInfo":
        """Stamp an operation with the current time"""
        return cls(
            timestamp_ns=time.time_ns(),
            operation=operation,
            additional_info=additional_info,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Export trace data in dictionary form"""
        return {
            "timestamp_ns": self.timestamp_ns,
            "operation": self.operation,
            "additional_info": self.additional_info,
        }


@dataclass(slots=True, eq=False)
class MemoryBlock:
    """Represents a contiguous run of the simulated address space"""

    start: int
    size: int
    owner: Optional[str] = field(default=None)
    allocated: bool = field(default=False)

    def __post_init__(self):
        if self.start < 0:
            raise ValueError(f"Block start must be >= 0, got {self.start}")
        if self.size <= 0:
            raise ValueError(f"Block size must be > 0, got {self.size}")
        if self.allocated != bool(self.owner):
            raise ValueError("A block carries an owner if and only if it is allocated")

    @property
    def end(self) -> int:
        """Get the end address of the block (exclusive)"""
        return self.start + self.size

    @property
    def last_addr(self) -> int:
        """Get the last address covered by the block (inclusive)"""
        return self.end - 1

    @property
    def label(self) -> str:
        return self.owner if self.allocated else UNUSED

    def assign(self, owner: str):
        if self.allocated:
            raise ValueError(
                f"Block at {self.start} is already allocated to '{self.owner}'"
            )
        if not owner:
            raise ValueError("Owner label must not be empty")
        self.owner = owner
        self.allocated = True

    def clear(self):
        self.owner = None
        self.allocated = False

    def to_dict(self) -> Dict[str, Any]:
        """Export block data in dictionary form"""
        return {
            "start": self.start,
            "end": self.end,
            "size": self.size,
            "owner": self.owner,
            "allocated": self.allocated,
            "label": self.label,
        }


def _free_key(block: MemoryBlock):
    return block.size, block.start


class BlockPool:
    """Ordered sequence of blocks partitioning ``[0, total_size)``.

    ``blocks`` holds every block in address order. Two indices are kept in
    step with it: ``free_blocks`` orders the free blocks by ``(size, start)``
    so best and worst fit are bisections, and ``owners`` maps each owner
    label to its allocated block.

    A free block's key must never change while it sits in ``free_blocks``;
    every mutation below takes it out first and puts it back afterwards.
    """

    def __init__(self, total_size: int, capture_trace: bool = False):
        """
        Create a pool seeded with a single free block spanning the space.

        Args:
                total_size (int): Size of the simulated address space in bytes.
                capture_trace (bool): Whether to record a trace for each operation.

        Returns:
                None
        """
        if total_size <= 0:
            raise ValueError(f"Total size must be > 0, got {total_size}")
        self.total_size = total_size
        self.capture_trace = capture_trace
        self.traces: List[TraceInfo] = []
        self.blocks: List[MemoryBlock] = [MemoryBlock(start=0, size=total_size)]
        self.free_blocks = SortedKeyList(self.blocks, key=_free_key)
        self.owners: Dict[str, MemoryBlock] = {}
        self.record_trace("create", total_size=total_size)

    def __iter__(self) -> Iterator[MemoryBlock]:
        return iter(self.blocks)

    def __len__(self) -> int:
        return len(self.blocks)

    def record_trace(self, operation: str, **info: Any):
        if self.capture_trace:
            self.traces.append(TraceInfo.capture(operation, **info))

    def index_of(self, block: MemoryBlock) -> int:
        """Locate a block in the address-ordered sequence.

        Args:
                block (MemoryBlock): A block owned by this pool.

        Returns:
                int: Its position in ``blocks``.
        """
        idx = bisect.bisect_left(self.blocks, block.start, key=lambda b: b.start)
        if idx < len(self.blocks) and self.blocks[idx] is block:
            return idx
        raise ValueError(f"Block at {block.start} does not belong to this pool")

    def get_block(self, owner: str) -> Optional[MemoryBlock]:
        return self.owners.get(owner)

    def first_fit(self, size: int) -> Optional[MemoryBlock]:
        """Earliest free block of at least ``size`` bytes"""
        for block in self.blocks:
            if not block.allocated and block.size >= size:
                return block
        return None

    def best_fit(self, size: int) -> Optional[MemoryBlock]:
        """Smallest free block of at least ``size`` bytes, earliest on ties"""
        # start is never negative, so (size, -1) sorts before every candidate of that size
        idx = self.free_blocks.bisect_key_left((size, -1))
        if idx < len(self.free_blocks):
            return self.free_blocks[idx]
        return None

    def worst_fit(self, size: int) -> Optional[MemoryBlock]:
        """Largest free block of at least ``size`` bytes, earliest on ties"""
        if not self.free_blocks:
            return None
        largest = self.free_blocks[-1].size
        if largest < size:
            return None
        return self.free_blocks[self.free_blocks.bisect_key_left((largest, -1))]

    def splice(self, block: MemoryBlock, size: int, owner: str) -> MemoryBlock:
        """Allocate ``size`` bytes from the low end of a free block.

        An exact fit relabels the block in place. Otherwise a new allocated
        block is carved from the low end and inserted immediately before the
        shrunken free remainder.

        Args:
                block (MemoryBlock): The free block chosen by a placement strategy.
                size (int): Number of bytes to allocate.
                owner (str): Label of the new allocation.

        Returns:
                MemoryBlock: The allocated block.
        """
        if block.allocated:
            raise ValueError(f"Cannot split an allocated block at {block.start}")
        if size <= 0 or size > block.size:
            raise ValueError(
                f"Cannot carve {size} bytes from a block of size {block.size}"
            )
        if owner in self.owners:
            raise ValueError(f"Owner '{owner}' already holds a block")

        if size == block.size:
            self.free_blocks.remove(block)
            block.assign(owner)
            self.owners[owner] = block
            self.record_trace("alloc", start=block.start, size=size, owner=owner)
            return block

        # The record is created before anything is touched; a MemoryError here
        # leaves the pool as it was.
        new_block = MemoryBlock(start=block.start, size=size, owner=owner, allocated=True)
        idx = self.index_of(block)

        self.free_blocks.remove(block)
        block.start += size
        block.size -= size
        self.free_blocks.add(block)
        self.blocks.insert(idx, new_block)
        self.owners[owner] = new_block

        logger.debug(
            f"Split block at {new_block.start}: {size} bytes to '{owner}', "
            f"{block.size} bytes left at {block.start}"
        )
        self.record_trace(
            "split",
            start=new_block.start,
            size=size,
            owner=owner,
            remaining_start=block.start,
            remaining_size=block.size,
        )
        return new_block

    def coalesce(self, block: MemoryBlock) -> MemoryBlock:
        """Merge a free block with its free neighbours.

        The next neighbour is folded into the block first, then the block is
        folded into the previous neighbour. Releasing a block between two
        free neighbours therefore leaves one block spanning all three.

        Args:
                block (MemoryBlock): A free block of this pool.

        Returns:
                MemoryBlock: The surviving free block.
        """
        if block.allocated:
            raise ValueError(f"Cannot coalesce an allocated block at {block.start}")

        idx = self.index_of(block)
        self.free_blocks.discard(block)
        merged = []

        if idx + 1 < len(self.blocks) and not self.blocks[idx + 1].allocated:
            _next = self.blocks[idx + 1]
            self.free_blocks.remove(_next)
            merged.append(("next", _next.start, _next.size))
            block.size += _next.size
            del self.blocks[idx + 1]

        if idx > 0 and not self.blocks[idx - 1].allocated:
            _prev = self.blocks[idx - 1]
            self.free_blocks.remove(_prev)
            merged.append(("prev", _prev.start, _prev.size))
            _prev.size += block.size
            del self.blocks[idx]
            block = _prev

        self.free_blocks.add(block)
        if merged:
            logger.debug(
                f"Coalesced into free block at {block.start} of size {block.size}: {merged}"
            )
            self.record_trace(
                "coalesce", start=block.start, size=block.size, merged=merged
            )
        return block

    def release(self, block: MemoryBlock) -> MemoryBlock:
        """Free an allocated block and coalesce it with its neighbours"""
        if not block.allocated:
            raise ValueError(f"Block at {block.start} is not allocated")
        owner = block.owner
        del self.owners[owner]
        block.clear()
        self.record_trace("free", start=block.start, size=block.size, owner=owner)
        return self.coalesce(block)

    def rebuild(self, blocks: List[MemoryBlock]):
        """Swap in a complete replacement sequence and re-index it"""
        self.blocks = list(blocks)
        self.free_blocks = SortedKeyList(
            (block for block in self.blocks if not block.allocated), key=_free_key
        )
        self.owners = {block.owner: block for block in self.blocks if block.allocated}

    def validate(self):
        """Check every address space invariant in a single pass.

        Raises:
                PoolCorruptionError: If the sequence or its indices are inconsistent.
        """
        if not self.blocks:
            raise PoolCorruptionError("Pool holds no blocks")
        if self.blocks[0].start != 0:
            raise PoolCorruptionError(
                f"First block starts at {self.blocks[0].start}, expected 0"
            )

        free_count = 0
        seen_owners = set()
        previous = None
        for block in self.blocks:
            if block.size <= 0:
                raise PoolCorruptionError(f"Block at {block.start} has size {block.size}")
            if previous is not None:
                if previous.end != block.start:
                    raise PoolCorruptionError(
                        f"Block at {previous.start} ends at {previous.end}, next starts at {block.start}"
                    )
                if not previous.allocated and not block.allocated:
                    raise PoolCorruptionError(
                        f"Adjacent free blocks at {previous.start} and {block.start}"
                    )
            if block.allocated:
                if not block.owner:
                    raise PoolCorruptionError(
                        f"Allocated block at {block.start} has no owner"
                    )
                if block.owner in seen_owners:
                    raise PoolCorruptionError(f"Owner '{block.owner}' appears twice")
                if self.owners.get(block.owner) is not block:
                    raise PoolCorruptionError(
                        f"Owner index out of step for '{block.owner}'"
                    )
                seen_owners.add(block.owner)
            else:
                # membership is looked up under the current (size, start) key
                if block not in self.free_blocks:
                    raise PoolCorruptionError(
                        f"Free block at {block.start} is missing from the free index "
                        f"or indexed under a stale key"
                    )
                free_count += 1
            previous = block

        if previous.end != self.total_size:
            raise PoolCorruptionError(
                f"Last block ends at {previous.end}, expected {self.total_size}"
            )
        if len(self.owners) != len(seen_owners):
            raise PoolCorruptionError("Owner index holds stale entries")
        if len(self.free_blocks) != free_count:
            raise PoolCorruptionError("Free index out of step with the block list")

    def get_allocated_bytes(self) -> int:
        return sum(block.size for block in self.owners.values())

    def get_free_bytes(self) -> int:
        return sum(block.size for block in self.free_blocks)

    def get_largest_free_block(self) -> int:
        return self.free_blocks[-1].size if self.free_blocks else 0

    def get_fragmentation_ratio(self) -> float:
        """External fragmentation: share of free space outside the largest hole"""
        total_free = self.get_free_bytes()
        if total_free == 0:
            return 0.0
        return 1.0 - (self.get_largest_free_block() / total_free)

    def get_memory_summary(self) -> Dict[str, Any]:
        """Get overall memory summary of the address space"""
        allocated = self.get_allocated_bytes()
        return {
            "total_size": self.total_size,
            "allocated_bytes": allocated,
            "free_bytes": self.total_size - allocated,
            "block_count": len(self.blocks),
            "allocated_block_count": len(self.owners),
            "free_block_count": len(self.free_blocks),
            "largest_free_block": self.get_largest_free_block(),
            "utilization": allocated / self.total_size,
            "fragmentation": self.get_fragmentation_ratio(),
        }

    def get_traces_by_operation(self, operation: str) -> List[Dict[str, Any]]:
        """Get all traces of a specific operation, oldest first"""
        return [trace.to_dict() for trace in self.traces if trace.operation == operation]

    def to_dict(self) -> Dict[str, Any]:
        """Export pool data in dictionary form"""
        return {
            "total_size": self.total_size,
            "blocks": [block.to_dict() for block in self.blocks],
            "summary": self.get_memory_summary(),
        }
