"""Split account lists into fixed-size lots."""

from typing import Iterator, Sequence, TypeVar

from conta_import.exceptions import ConfigurationError

T = TypeVar("T")

DEFAULT_LOT_SIZE = 500


def partition(records: Sequence[T] | None, size: int = DEFAULT_LOT_SIZE) -> Iterator[list[T]]:
    """Yield contiguous lots of at most ``size`` records, in input order.

    Parameters
    ----------
    records : Sequence[T] | None
        Records to split. ``None`` and empty sequences yield nothing.
    size : int
        Maximum lot size. The last lot may be smaller.

    Yields
    ------
    list[T]
        The next lot.
    """
    if size < 1:
        raise ConfigurationError(f"Lot size must be >= 1, got {size}")
    if not records:
        return

    for start in range(0, len(records), size):
        yield list(records[start:start + size])
