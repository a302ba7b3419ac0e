# tpch_q3/core/engine/records.py
"""
RECORDS MODULE - Record shapes flowing through the query plan

Purpose:
    1. Positional records as they come out of a table scan
    2. The expected column layout of every table the plan reads
    3. Typed tuples produced by the projections
    4. Strict calendar-date parsing shared by every date filter

Data Flow:
    table row → Record → (filter, project) → OrderTuple / LineItemRevenue / customer key
                                                        ↓
                                                    ResultRow
"""

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, NamedTuple, Sequence, Tuple

from tpch_q3.core.engine.errors import ParseError, SchemaMismatchError


# ============================================================================
# DATES
# ============================================================================

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_date(value: Any) -> date:
    """
    Parse a YYYY-MM-DD string into a date.

    Only the fixed-width ISO form is accepted. "1995-3-15", "19950315" and
    anything with a time component raise ParseError.

    Examples:
        "1995-03-15" → datetime.date(1995, 3, 15)
        "1995-02-30" → ParseError
    """
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not DATE_PATTERN.match(value):
        raise ParseError(value)
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as e:
        raise ParseError(value, str(e)) from e


# ============================================================================
# POSITIONAL RECORDS
# ============================================================================


class Record:
    """
    One fixed-schema row with positional typed accessors.

    The record does not know its column names; the stage that reads it
    resolves names to positions through a TableSchema.
    """

    def __init__(self, values: Sequence[Any]):
        self.values = tuple(values)

    def __len__(self) -> int:
        return len(self.values)

    def __eq__(self, other) -> bool:
        return isinstance(other, Record) and self.values == other.values

    def __hash__(self) -> int:
        return hash(self.values)

    def __repr__(self) -> str:
        return f"Record{self.values!r}"

    def get_field(self, index: int) -> Any:
        return self.values[index]

    def get_long(self, index: int) -> int:
        return int(self.values[index])

    def get_int(self, index: int) -> int:
        return int(self.values[index])

    def get_double(self, index: int) -> float:
        return float(self.values[index])

    def get_string(self, index: int) -> str:
        value = self.values[index]
        if isinstance(value, date):
            return value.isoformat()
        return str(value)


@dataclass(frozen=True)
class TableSchema:
    """Table name plus its column names in physical order."""

    name: str
    fields: Tuple[str, ...]

    def index_of(self, field: str) -> int:
        try:
            return self.fields.index(field)
        except ValueError:
            raise SchemaMismatchError(
                self.name, f"no column {field!r} in {list(self.fields)}"
            ) from None

    def project(self, fields: Sequence[str]) -> "TableSchema":
        """Schema of a record narrowed to the given fields, in the given order."""
        for field in fields:
            self.index_of(field)
        return TableSchema(self.name, tuple(fields))


CUSTOMER = TableSchema(
    "customer",
    (
        "c_custkey",
        "c_name",
        "c_address",
        "c_nationkey",
        "c_phone",
        "c_acctbal",
        "c_mktsegment",
        "c_comment",
    ),
)

ORDERS = TableSchema(
    "orders",
    (
        "o_orderkey",
        "o_custkey",
        "o_orderstatus",
        "o_totalprice",
        "o_orderdate",
        "o_orderpriority",
        "o_clerk",
        "o_shippriority",
        "o_comment",
    ),
)

LINEITEM = TableSchema(
    "lineitem",
    (
        "l_orderkey",
        "l_partkey",
        "l_suppkey",
        "l_linenumber",
        "l_quantity",
        "l_extendedprice",
        "l_discount",
        "l_tax",
        "l_returnflag",
        "l_linestatus",
        "l_shipdate",
        "l_commitdate",
        "l_receiptdate",
        "l_shipinstruct",
        "l_shipmode",
        "l_comment",
    ),
)


# ============================================================================
# TYPED TUPLES
# ============================================================================


class OrderTuple(NamedTuple):
    order_key: int
    cust_key: int
    order_date: date
    ship_priority: int


class LineItemRevenue(NamedTuple):
    order_key: int
    revenue: float


@dataclass(frozen=True)
class ResultRow:
    """
    One output row of the query.

    Revenue is a floating-point sum, so its last bits depend on the order
    the line items were folded in.
    """

    order_key: int
    revenue: float
    order_date: date
    ship_priority: int

    @property
    def aggregation_key(self) -> Tuple[int, date, int]:
        return (self.order_key, self.order_date, self.ship_priority)
