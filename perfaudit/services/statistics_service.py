# perfaudit/services/statistics_service.py
import statistics
from typing import Sequence, Tuple

def mean_std(values: Sequence[float]) -> Tuple[float, float]:
    """
    Computes the arithmetic mean and population standard deviation.

    Args:
        values: A non-empty sequence of numbers.

    Returns:
        A (mean, stddev) tuple.

    Raises:
        ValueError: If values is empty.
    """
    if not values:
        raise ValueError("mean_std() requires at least one value")

    mean = statistics.fmean(values)
    return mean, statistics.pstdev(values, mu=mean)
