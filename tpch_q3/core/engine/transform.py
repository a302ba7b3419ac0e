# tpch_q3/core/engine/transform.py
"""
TRANSFORM MODULE - Filter and project table records

Purpose:
    1. Drop records that fail the query predicates (segment, order date, ship date)
    2. Narrow records to the columns the joins need
    3. Turn positional records into typed tuples

Data Flow:
    Record batch → Filter → ProjectRecords → Map → typed tuples
                                                       ↓
                                                  join.py input

Every stage is a lazy generator over its input, so a batch flows through the
whole chain without intermediate lists.
"""

from datetime import date
from functools import reduce
from typing import Any, Callable, Iterable, Iterator, List, Optional, Sequence

from tpch_q3.core.engine.records import (
    CUSTOMER,
    LINEITEM,
    ORDERS,
    LineItemRevenue,
    OrderTuple,
    Record,
    TableSchema,
    parse_date,
)


# ============================================================================
# STAGES
# ============================================================================


class Stage:
    """A named, lazy record transform."""

    def __init__(self, name: str):
        self.name = name
        self.rows_in = 0
        self.rows_out = 0

    def apply(self, items: Iterable[Any]) -> Iterator[Any]:
        raise NotImplementedError

    def __call__(self, items: Iterable[Any]) -> Iterator[Any]:
        for item in self.apply(self._count_in(items)):
            self.rows_out += 1
            yield item

    def _count_in(self, items: Iterable[Any]) -> Iterator[Any]:
        for item in items:
            self.rows_in += 1
            yield item

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class Filter(Stage):
    """
    Keep records the predicate accepts.

    selectivity is an optional planning hint (estimated fraction of rows
    kept). It is only reported next to the observed selectivity and never
    changes which rows pass.
    """

    def __init__(
        self,
        name: str,
        predicate: Callable[[Any], bool],
        selectivity: Optional[float] = None,
    ):
        if selectivity is not None and not 0.0 < selectivity <= 1.0:
            raise ValueError(f"selectivity must be in (0, 1], got {selectivity}")
        super().__init__(name)
        self.predicate = predicate
        self.selectivity = selectivity

    def apply(self, items: Iterable[Any]) -> Iterator[Any]:
        predicate = self.predicate
        for item in items:
            if predicate(item):
                yield item

    def observed_selectivity(self) -> Optional[float]:
        if self.rows_in == 0:
            return None
        return self.rows_out / self.rows_in


class ProjectRecords(Stage):
    """Narrow records to named fields, in the given order."""

    def __init__(self, name: str, schema: TableSchema, fields: Sequence[str]):
        super().__init__(name)
        self.indices = [schema.index_of(field) for field in fields]
        self.output_schema = schema.project(fields)

    def apply(self, items: Iterable[Record]) -> Iterator[Record]:
        indices = self.indices
        for record in items:
            values = record.values
            yield Record([values[i] for i in indices])


class Map(Stage):
    def __init__(self, name: str, fn: Callable[[Any], Any]):
        super().__init__(name)
        self.fn = fn

    def apply(self, items: Iterable[Any]) -> Iterator[Any]:
        fn = self.fn
        for item in items:
            yield fn(item)


# ============================================================================
# SCAN PIPELINES
# ============================================================================


class ScanPipeline:
    """
    The per-table part of the plan: which table to read, with which layout,
    and the stages every scanned record goes through.
    """

    def __init__(self, name: str, schema: TableSchema, stages: List[Stage]):
        self.name = name
        self.schema = schema
        self.stages = stages

    def apply(self, records: Iterable[Record]) -> Iterator[Any]:
        return reduce(lambda items, stage: stage(items), self.stages, iter(records))

    def describe(self) -> List[str]:
        """Stage names and counters, for the query log."""
        lines = []
        for stage in self.stages:
            line = f"{stage.name}: {stage.rows_in} in, {stage.rows_out} out"
            if isinstance(stage, Filter):
                observed = stage.observed_selectivity()
                if observed is not None:
                    line += f" (selectivity {observed:.3f}"
                    if stage.selectivity is not None:
                        line += f", estimated {stage.selectivity:.3f}"
                    line += ")"
            lines.append(line)
        return lines


def customer_pipeline(segment: str) -> ScanPipeline:
    """
    Customers of one market segment, reduced to their keys.

    Output: customer keys (int)
    """
    segment_idx = CUSTOMER.index_of("c_mktsegment")
    project = ProjectRecords("Project customers", CUSTOMER, ["c_custkey"])

    return ScanPipeline(
        "customer",
        CUSTOMER,
        [
            Filter(
                "Filter customers",
                lambda record: record.get_string(segment_idx) == segment,
                selectivity=0.25,
            ),
            project,
            Map("Extract customer ID", lambda record: record.get_long(0)),
        ],
    )


def order_pipeline(cutoff: date) -> ScanPipeline:
    """
    Orders placed strictly before the cutoff date.

    Output: OrderTuple(order_key, cust_key, order_date, ship_priority)
    """
    date_idx = ORDERS.index_of("o_orderdate")
    project = ProjectRecords(
        "Project orders",
        ORDERS,
        ["o_orderkey", "o_custkey", "o_orderdate", "o_shippriority"],
    )

    return ScanPipeline(
        "orders",
        ORDERS,
        [
            Filter(
                "Filter orders",
                lambda record: parse_date(record.get_string(date_idx)) < cutoff,
            ),
            project,
            Map("Unpack orders", unpack_order),
        ],
    )


def lineitem_pipeline(cutoff: date) -> ScanPipeline:
    """
    Line items shipped strictly after the cutoff date, with their revenue.

    Output: LineItemRevenue(order_key, extended_price * (1 - discount))
    """
    ship_idx = LINEITEM.index_of("l_shipdate")
    project = ProjectRecords(
        "Project line items",
        LINEITEM,
        ["l_orderkey", "l_extendedprice", "l_discount"],
    )

    return ScanPipeline(
        "lineitem",
        LINEITEM,
        [
            Filter(
                "Filter line items",
                lambda record: parse_date(record.get_string(ship_idx)) > cutoff,
            ),
            project,
            Map("Extract line item data", line_item_revenue),
        ],
    )


def unpack_order(record: Record) -> OrderTuple:
    return OrderTuple(
        order_key=record.get_long(0),
        cust_key=record.get_long(1),
        order_date=parse_date(record.get_string(2)),
        ship_priority=record.get_int(3),
    )


def line_item_revenue(record: Record) -> LineItemRevenue:
    return LineItemRevenue(
        order_key=record.get_long(0),
        revenue=record.get_double(1) * (1 - record.get_double(2)),
    )
