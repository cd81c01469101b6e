"""
Shared pytest configuration and fixtures for allocator engine tests.
"""

import pytest

from memsim.memory.allocator import ContiguousAllocator
from memsim.memory.blocks import BlockPool
from memsim.memory.conf import AllocatorConfig


@pytest.fixture
def small_allocator():
    """A 100-byte address space"""
    return ContiguousAllocator(100)


@pytest.fixture
def traced_allocator():
    """A 100-byte address space that records every pool operation"""
    return ContiguousAllocator(config=AllocatorConfig(total_size=100, capture_trace=True))


@pytest.fixture
def empty_pool():
    return BlockPool(100)


@pytest.fixture
def holey_allocator():
    """
    120 bytes laid out as three free holes of 30, 10 and 60 bytes:

    [0:30 free] [30:35 S1] [35:45 free] [45:60 S2] [60:120 free]
    """
    allocator = ContiguousAllocator(120)
    for owner, size in [("A", 30), ("S1", 5), ("B", 10), ("S2", 15)]:
        assert allocator.allocate(owner, size, "F").success
    assert allocator.release("A").success
    assert allocator.release("B").success
    return allocator


@pytest.fixture
def compaction_allocator():
    """
    The textbook compaction layout on 100 bytes:

    [0:20 A] [20:50 free] [50:60 B] [60:100 free]
    """
    allocator = ContiguousAllocator(100)
    for owner, size in [("A", 20), ("X", 30), ("B", 10)]:
        assert allocator.allocate(owner, size, "F").success
    assert allocator.release("X").success
    return allocator


def layout(allocator):
    """Blocks as (start, size, owner) tuples, owner None for free blocks"""
    return [(block.start, block.size, block.owner) for block in allocator.blocks]


def assert_pool_invariants(allocator):
    """Check the address space invariants without relying on BlockPool.validate"""
    blocks = allocator.blocks
    assert blocks, "an address space always holds at least one block"
    assert blocks[0].start == 0
    assert blocks[-1].end == allocator.total_size

    owners = []
    for previous, current in zip(blocks, blocks[1:]):
        assert previous.start < current.start
        assert previous.end == current.start
        assert previous.allocated or current.allocated, "adjacent free blocks"
    for block in blocks:
        assert block.size > 0
        assert block.allocated == bool(block.owner)
        if block.allocated:
            owners.append(block.owner)
    assert len(owners) == len(set(owners))

    status = allocator.status()
    assert [(entry.start, entry.end) for entry in status] == [
        (block.start, block.end - 1) for block in blocks
    ]


@pytest.fixture
def check_invariants():
    """Provide the invariant checker to tests"""
    return assert_pool_invariants


@pytest.fixture
def block_layout():
    """Provide the layout helper to tests"""
    return layout
