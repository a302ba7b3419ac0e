from datetime import date

import pytest

from tpch_q3.core.engine.aggregate import (
    aggregate_revenue,
    check_order_identity,
    combine_revenue,
    reduce_by_key,
    split_partitions,
)
from tpch_q3.core.engine.errors import AggregationInvariantError
from tpch_q3.core.engine.records import ResultRow

D1 = date(1995, 3, 1)
D2 = date(1995, 3, 2)


def test_reduce_by_key_sums_per_key():
    items = [("a", 1), ("b", 2), ("a", 3), ("c", 4), ("b", 5)]
    result = reduce_by_key(items, lambda t: t[0], lambda t1, t2: (t2[0], t1[1] + t2[1]))
    assert sorted(result) == [("a", 4), ("b", 7), ("c", 4)]


@pytest.mark.parametrize("partitions", [2, 3, 7, 50])
def test_partial_aggregation_matches_single_fold(partitions):
    items = [(i % 6, i) for i in range(100)]

    def combine(t1, t2):
        return (t2[0], t1[1] + t2[1])

    expected = sorted(reduce_by_key(items, lambda t: t[0], combine))
    assert sorted(reduce_by_key(items, lambda t: t[0], combine, partitions)) == expected


def test_reduce_by_key_accepts_iterators_and_empty_input():
    assert reduce_by_key(iter([]), lambda t: t, lambda a, b: b, partitions=4) == []
    assert reduce_by_key((x for x in [1, 1, 2]), lambda t: t, lambda a, b: b, 2) == [1, 2]


def test_split_partitions_covers_input():
    chunks = split_partitions(list(range(10)), 3)
    assert [x for chunk in chunks for x in chunk] == list(range(10))
    assert len(chunks) == 3


def test_combine_revenue_returns_new_row():
    t1 = ResultRow(1, 90.0, D1, 1)
    t2 = ResultRow(1, 200.0, D1, 1)
    combined = combine_revenue(t1, t2)
    assert combined == ResultRow(1, 290.0, D1, 1)
    assert t1.revenue == 90.0 and t2.revenue == 200.0


def test_combine_revenue_rejects_different_groups():
    with pytest.raises(AggregationInvariantError):
        combine_revenue(ResultRow(1, 1.0, D1, 1), ResultRow(1, 1.0, D2, 1))
    with pytest.raises(AggregationInvariantError):
        combine_revenue(ResultRow(1, 1.0, D1, 1), ResultRow(1, 1.0, D1, 2))


def test_aggregate_revenue_one_row_per_key():
    rows = [
        ResultRow(1, 90.0, D1, 1),
        ResultRow(2, 10.0, D2, 0),
        ResultRow(1, 200.0, D1, 1),
    ]
    result = sorted(aggregate_revenue(rows), key=lambda r: r.order_key)
    assert result == [ResultRow(1, 290.0, D1, 1), ResultRow(2, 10.0, D2, 0)]


def test_conflicting_order_attributes_fail():
    """Same order key with two order dates means corrupted input"""
    rows = [ResultRow(1, 90.0, D1, 1), ResultRow(1, 200.0, D2, 1)]
    with pytest.raises(AggregationInvariantError):
        aggregate_revenue(rows)
    with pytest.raises(AggregationInvariantError):
        check_order_identity(rows)


def test_revenue_sum_is_order_independent_up_to_rounding():
    values = [0.1, 0.2, 0.3, 1e10, -1e10, 0.7]
    rows = [ResultRow(1, v, D1, 0) for v in values]
    forward = aggregate_revenue(rows)[0].revenue
    backward = aggregate_revenue(list(reversed(rows)), partitions=3)[0].revenue
    assert forward == pytest.approx(backward, abs=1e-5)
