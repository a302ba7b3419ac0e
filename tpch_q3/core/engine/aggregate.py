# tpch_q3/core/engine/aggregate.py
"""
AGGREGATE MODULE - Group rows by key and fold them into one row per group

Purpose:
    1. reduce_by_key(): one representative per distinct key, built with a combiner
    2. Partial aggregation per partition, then a single merge of the partials
    3. Revenue combiner and the order identity check for the shipping priority query

Why partials:
    The combiner is associative and commutative on revenue, so partitions can
    be folded independently. Each partition owns its accumulators; only the
    merge step touches the final ones.
"""

from typing import Callable, Dict, Hashable, Iterable, List, Sequence, TypeVar

from tpch_q3.core.engine.errors import AggregationInvariantError
from tpch_q3.core.engine.records import ResultRow

T = TypeVar("T")
K = TypeVar("K", bound=Hashable)


# ============================================================================
# GENERIC REDUCE-BY-KEY
# ============================================================================


def fold_by_key(
    items: Iterable[T], key_fn: Callable[[T], K], combine: Callable[[T, T], T]
) -> Dict[K, T]:
    """
    Fold items into a dict of one accumulated value per key.

    The first item seen for a key becomes its accumulator; every later item
    is combined as combine(accumulator, item).
    """
    acc: Dict[K, T] = {}
    for item in items:
        key = key_fn(item)
        if key in acc:
            acc[key] = combine(acc[key], item)
        else:
            acc[key] = item
    return acc


def split_partitions(items: Sequence[T], partitions: int) -> List[Sequence[T]]:
    """Split into contiguous chunks of near-equal size (no key affinity)."""
    size = -(-len(items) // partitions) if items else 0
    if size == 0:
        return [items]
    return [items[i : i + size] for i in range(0, len(items), size)]


def reduce_by_key(
    items: Iterable[T],
    key_fn: Callable[[T], K],
    combine: Callable[[T, T], T],
    partitions: int = 1,
) -> List[T]:
    """
    Keep exactly one value per distinct key, folded with combine.

    With partitions > 1 every chunk of the input is folded on its own
    (partial aggregation) and the partial results are merged by key.

    Args:
        items: Input rows
        key_fn: Grouping key of a row
        combine: Folds two rows of the same key into one
        partitions: Number of partial aggregations before the merge

    Returns:
        One row per distinct key, in no particular order
    """
    if partitions < 1:
        raise ValueError(f"partitions must be >= 1, got {partitions}")

    if partitions == 1:
        return list(fold_by_key(items, key_fn, combine).values())

    rows = items if isinstance(items, Sequence) else list(items)
    partials = [
        fold_by_key(chunk, key_fn, combine)
        for chunk in split_partitions(rows, partitions)
    ]

    # Merge step: the only writer of the final accumulators
    merged: Dict[K, T] = {}
    for partial in partials:
        for key, value in partial.items():
            if key in merged:
                merged[key] = combine(merged[key], value)
            else:
                merged[key] = value
    return list(merged.values())


# ============================================================================
# SHIPPING PRIORITY AGGREGATION
# ============================================================================


def result_key(row: ResultRow):
    return row.aggregation_key


def combine_revenue(t1: ResultRow, t2: ResultRow) -> ResultRow:
    """
    Add t1's revenue to t2 and keep t2's identity.

    Returns a new row; neither input is modified, so a row can never be
    updated through two accumulators at once.

    Raises:
        AggregationInvariantError: the rows describe the same order differently
    """
    if (
        t1.order_key != t2.order_key
        or t1.order_date != t2.order_date
        or t1.ship_priority != t2.ship_priority
    ):
        raise AggregationInvariantError(
            f"Cannot combine rows of different groups: {t1} and {t2}"
        )

    return ResultRow(
        order_key=t2.order_key,
        revenue=t1.revenue + t2.revenue,
        order_date=t2.order_date,
        ship_priority=t2.ship_priority,
    )


def check_order_identity(rows: Iterable[ResultRow]) -> None:
    """
    Fail if one order key shows up in more than one group.

    The order date and ship priority come from the single orders row of an
    order, so two groups for one order key mean corrupted input.
    """
    seen: Dict[int, ResultRow] = {}
    for row in rows:
        other = seen.get(row.order_key)
        if other is None:
            seen[row.order_key] = row
        elif (other.order_date, other.ship_priority) != (
            row.order_date,
            row.ship_priority,
        ):
            raise AggregationInvariantError(
                f"Order {row.order_key} has conflicting attributes: "
                f"({other.order_date}, {other.ship_priority}) vs "
                f"({row.order_date}, {row.ship_priority})"
            )


def aggregate_revenue(rows: Iterable[ResultRow], partitions: int = 1) -> List[ResultRow]:
    """
    Sum revenue per (order key, order date, ship priority).

    Example:
        [(O1, 90.0, 1995-03-01, 1), (O1, 200.0, 1995-03-01, 1)]
        → [(O1, 290.0, 1995-03-01, 1)]
    """
    grouped = reduce_by_key(rows, result_key, combine_revenue, partitions)
    check_order_identity(grouped)
    return grouped
