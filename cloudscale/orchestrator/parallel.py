"""Window partitioning for bounded-concurrency runs."""
from typing import List, Tuple


def partition_windows(total: int, size: int) -> List[Tuple[int, ...]]:
    """
    Split ``range(total)`` into consecutive windows of ``size`` indices.

    The last window may be shorter; ``total == 0`` gives no windows.
    """
    if size < 1:
        raise ValueError("window size must be at least 1")
    return [tuple(range(start, min(start + size, total))) for start in range(0, total, size)]
