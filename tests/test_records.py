from datetime import date

import pytest

from tpch_q3.core import models
from tpch_q3.core.engine.errors import ParseError, SchemaMismatchError
from tpch_q3.core.engine.records import (
    CUSTOMER,
    LINEITEM,
    ORDERS,
    Record,
    ResultRow,
    parse_date,
)


def test_parse_date_iso():
    assert parse_date("1995-03-15") == date(1995, 3, 15)


@pytest.mark.parametrize(
    "value",
    ["1995-3-15", "19950315", "1995-02-30", "15.03.1995", "1995-03-15 10:00", "", None, 19950315],
)
def test_parse_date_rejects_malformed(value):
    with pytest.raises(ParseError):
        parse_date(value)


def test_record_typed_accessors():
    record = Record([7, "3.5", "BUILDING", 2.0, date(1995, 1, 2)])
    assert record.get_long(0) == 7
    assert record.get_double(1) == 3.5
    assert record.get_string(2) == "BUILDING"
    assert record.get_int(3) == 2
    assert record.get_string(4) == "1995-01-02"
    assert len(record) == 5


def test_column_contracts():
    """Positions the plan reads by index"""
    assert CUSTOMER.index_of("c_mktsegment") == 6
    assert ORDERS.index_of("o_orderdate") == 4
    assert LINEITEM.index_of("l_shipdate") == 10

    projected = ORDERS.project(["o_orderkey", "o_custkey", "o_orderdate", "o_shippriority"])
    assert projected.fields == ("o_orderkey", "o_custkey", "o_orderdate", "o_shippriority")
    assert projected.index_of("o_shippriority") == 3


def test_unknown_column_is_schema_mismatch():
    with pytest.raises(SchemaMismatchError):
        CUSTOMER.index_of("c_custname")
    with pytest.raises(SchemaMismatchError):
        LINEITEM.project(["l_orderkey", "l_price"])


@pytest.mark.parametrize(
    "schema, model",
    [(CUSTOMER, models.Customer), (ORDERS, models.Order), (LINEITEM, models.LineItem)],
)
def test_models_match_engine_schemas(schema, model):
    assert model.__tablename__ == schema.name
    assert tuple(col.name for col in model.__table__.columns) == schema.fields


def test_result_row_aggregation_key():
    row = ResultRow(1, 10.0, date(1995, 3, 1), 0)
    assert row.aggregation_key == (1, date(1995, 3, 1), 0)
