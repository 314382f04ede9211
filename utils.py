from typing import TypeVar

T = TypeVar("T")


def not_none(value: T | None, value_name: str | None = None) -> T:
    if value is None:
        name = f" '{value_name}'" if value_name else ""
        raise ValueError(f"Expected{name} to be present, got None")
    return value


def non_negative(count: int | None) -> int:
    """Token counts reported upstream may be missing or negative; both count as 0"""
    if count is None or count < 0:
        return 0
    return count
