from pydantic import BaseModel, Field, field_validator
from typing import Any

from memsim.memory.strategies import AllocationStrategy

MAX_OWNER_LENGTH = 9


def check_owner_label(value: str) -> str:
    """Owner labels are single tokens of printable, non-blank characters"""
    if not value.isprintable() or any(char.isspace() for char in value):
        raise ValueError("owner label must be printable and contain no whitespace")
    return value


class AllocatorConfig(BaseModel):
    """
    AllocatorConfig defines how a simulated address space is set up.

    Attributes:
        total_size (int): Size of the address space in bytes.
        default_strategy (AllocationStrategy): Strategy used when a request names none.
        capture_trace (bool): Record a trace entry for every pool operation.
        validate_after_mutation (bool): Re-check all block invariants after each change.

    Example:
        >>> config = AllocatorConfig(total_size=100)
        >>> config.default_strategy
        <AllocationStrategy.FIRST_FIT: 'F'>
    """

    total_size: int = Field(
        default=1024,
        gt=0,
        title="Total Size",
        description="Size of the simulated address space in bytes",
    )
    default_strategy: AllocationStrategy = Field(
        default=AllocationStrategy.FIRST_FIT,
        title="Default Strategy",
        description="Placement strategy used when a request does not name one",
    )
    capture_trace: bool = Field(
        default=False,
        title="Capture Trace",
        description="Record a trace entry for every split, merge and compaction",
    )
    validate_after_mutation: bool = Field(
        default=True,
        title="Validate After Mutation",
        description="Check the address space invariants after every operation",
    )

    @field_validator("default_strategy", mode="before")
    @classmethod
    def _parse_strategy(cls, value: Any) -> Any:
        if isinstance(value, str):
            return AllocationStrategy.parse(value)
        return value


class ReleaseCommand(BaseModel):
    """Arguments of an ``RL`` command"""

    owner: str = Field(
        min_length=1,
        max_length=MAX_OWNER_LENGTH,
        title="Owner",
        description="Label of the allocation to release",
    )

    @field_validator("owner")
    @classmethod
    def _check_owner(cls, value: str) -> str:
        return check_owner_label(value)


class RequestCommand(BaseModel):
    """
    Arguments of an ``RQ`` command, validated before they reach the engine.

    Example:
        >>> command = RequestCommand(owner="P1", size=40, strategy="b")
        >>> command.strategy
        <AllocationStrategy.BEST_FIT: 'B'>
    """

    owner: str = Field(
        min_length=1,
        max_length=MAX_OWNER_LENGTH,
        title="Owner",
        description="Label of the new allocation, at most 9 characters",
    )
    size: int = Field(gt=0, title="Size", description="Requested size in bytes")
    strategy: AllocationStrategy = Field(
        default=AllocationStrategy.FIRST_FIT,
        title="Strategy",
        description="Placement strategy: F (first), B (best) or W (worst) fit",
    )

    @field_validator("owner")
    @classmethod
    def _check_owner(cls, value: str) -> str:
        return check_owner_label(value)

    @field_validator("strategy", mode="before")
    @classmethod
    def _parse_strategy_letter(cls, value: Any) -> Any:
        if isinstance(value, str):
            letter = value.strip()
            if len(letter) != 1:
                raise ValueError("strategy must be one of the letters F, B or W")
            return AllocationStrategy.parse(letter)
        return value
