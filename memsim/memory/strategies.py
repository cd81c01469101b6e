from abc import ABC, abstractmethod
from enum import Enum
from typing import Dict, Optional, Union

from memsim.memory.blocks import BlockPool, MemoryBlock


class AllocationStrategy(Enum):
    """Enumeration of placement strategies, valued by their command letter"""

    FIRST_FIT = "F"
    BEST_FIT = "B"
    WORST_FIT = "W"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            text = value.strip().upper()
            for member in cls:
                if text in (member.value, member.name):
                    return member
        return None

    @classmethod
    def parse(cls, value: Union[str, "AllocationStrategy"]) -> "AllocationStrategy":
        """Accept a member, its letter (``F``/``B``/``W``) or its name, in any case"""
        if isinstance(value, cls):
            return value
        return cls(value)


class PlacementStrategy(ABC):
    """Rule choosing which free block satisfies a request.

    Every strategy only considers free blocks of at least the requested
    size. When several candidates are equally good, the one at the lowest
    address wins.
    """

    strategy: AllocationStrategy

    def __init__(self, name: str):
        self.name = name

    @abstractmethod
    def select(self, pool: BlockPool, size: int) -> Optional[MemoryBlock]:
        """Pick a free block for ``size`` bytes, or None if nothing fits"""
        pass

    def can_allocate(self, pool: BlockPool, size: int) -> bool:
        return self.select(pool, size) is not None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.name})"


class FirstFitStrategy(PlacementStrategy):
    """First free block large enough, scanning in address order"""

    strategy = AllocationStrategy.FIRST_FIT

    def __init__(self):
        super().__init__("First Fit")

    def select(self, pool: BlockPool, size: int) -> Optional[MemoryBlock]:
        return pool.first_fit(size)


class BestFitStrategy(PlacementStrategy):
    """Smallest free block large enough"""

    strategy = AllocationStrategy.BEST_FIT

    def __init__(self):
        super().__init__("Best Fit")

    def select(self, pool: BlockPool, size: int) -> Optional[MemoryBlock]:
        return pool.best_fit(size)


class WorstFitStrategy(PlacementStrategy):
    """Largest free block, provided it is large enough"""

    strategy = AllocationStrategy.WORST_FIT

    def __init__(self):
        super().__init__("Worst Fit")

    def select(self, pool: BlockPool, size: int) -> Optional[MemoryBlock]:
        return pool.worst_fit(size)


def default_strategies() -> Dict[AllocationStrategy, PlacementStrategy]:
    strategies = [FirstFitStrategy(), BestFitStrategy(), WorstFitStrategy()]
    return {placement.strategy: placement for placement in strategies}
