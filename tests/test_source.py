from datetime import date

import pytest
from sqlalchemy import text

from tpch_q3.core.engine import source, transform
from tpch_q3.core.engine.errors import ParseError, SchemaMismatchError
from tpch_q3.core.engine.records import CUSTOMER, LINEITEM, ORDERS, Record
from tpch_rows import customer, line_item, order


@pytest.mark.asyncio
async def test_read_table_streams_batches(db_session, seed):
    await seed(customers=[customer(i) for i in range(1, 8)])

    batches = [batch async for batch in source.read_table(db_session, CUSTOMER, 3)]
    assert [len(batch) for batch in batches] == [3, 3, 1]
    first = batches[0][0]
    assert isinstance(first, Record)
    assert len(first) == len(CUSTOMER.fields)
    assert first.get_string(6) == "BUILDING"


@pytest.mark.asyncio
async def test_run_scan_pipeline(db_session, seed):
    await seed(
        customers=[customer(1, "BUILDING"), customer(2, "MACHINERY"), customer(3, "BUILDING")]
    )
    keys = await source.run_scan_pipeline(
        db_session, transform.customer_pipeline("BUILDING"), batch_size=2
    )
    assert sorted(keys) == [1, 3]


@pytest.mark.asyncio
async def test_validate_schema_accepts_model_tables(db_session):
    await source.validate_schema(db_session, CUSTOMER)
    await source.validate_schema(db_session, ORDERS)


@pytest.mark.asyncio
async def test_wrong_column_order_is_schema_mismatch(db_session):
    await db_session.execute(text("DROP TABLE orders"))
    await db_session.execute(
        text(
            "CREATE TABLE orders (o_orderkey INTEGER, o_orderdate TEXT, o_custkey INTEGER, "
            "o_orderstatus TEXT, o_totalprice REAL, o_orderpriority TEXT, o_clerk TEXT, "
            "o_shippriority INTEGER, o_comment TEXT)"
        )
    )
    await db_session.commit()

    with pytest.raises(SchemaMismatchError, match="column 1"):
        await source.validate_schema(db_session, ORDERS)


@pytest.mark.asyncio
async def test_missing_column_is_schema_mismatch(db_session):
    await db_session.execute(text("DROP TABLE customer"))
    await db_session.execute(text("CREATE TABLE customer (c_custkey INTEGER, c_name TEXT)"))
    await db_session.commit()

    with pytest.raises(SchemaMismatchError, match="expected 8 columns"):
        await source.validate_schema(db_session, CUSTOMER)


@pytest.mark.asyncio
async def test_missing_table_is_schema_mismatch(db_session):
    await db_session.execute(text("DROP TABLE customer"))
    await db_session.commit()

    with pytest.raises(SchemaMismatchError, match="does not exist"):
        await source.validate_schema(db_session, CUSTOMER)


@pytest.mark.asyncio
async def test_scan_reads_only_matching_orders(db_session, seed):
    await seed(orders=[order(1, 1, "1995-01-01"), order(2, 1, "1995-12-01")])
    orders = await source.run_scan_pipeline(
        db_session, transform.order_pipeline(date(1995, 3, 15)), batch_size=100
    )
    assert [o.order_key for o in orders] == [1]


@pytest.mark.asyncio
async def test_column_names_must_match_exactly(db_session):
    await db_session.execute(text("DROP TABLE customer"))
    await db_session.execute(
        text(
            'CREATE TABLE customer ("C_CUSTKEY" INTEGER, c_name TEXT, c_address TEXT, '
            "c_nationkey INTEGER, c_phone TEXT, c_acctbal REAL, c_mktsegment TEXT, c_comment TEXT)"
        )
    )
    await db_session.commit()

    with pytest.raises(SchemaMismatchError, match="column 0"):
        await source.validate_schema(db_session, CUSTOMER)


@pytest.mark.asyncio
async def test_scan_error_leaves_session_usable(db_session, seed):
    await seed(
        line_items=[
            line_item(1, 1, 10.0, 0.0, "1995-04-01"),
            line_item(1, 2, 10.0, 0.0, "04/01/1995"),
            line_item(1, 3, 10.0, 0.0, "1995-04-02"),
        ]
    )
    with pytest.raises(ParseError):
        await source.run_scan_pipeline(
            db_session, transform.lineitem_pipeline(date(1995, 3, 15)), batch_size=1
        )

    # The stream was closed, so the same session can run the next statement
    result = await db_session.execute(text("SELECT count(*) FROM lineitem"))
    assert result.scalar() == 3
    await source.validate_schema(db_session, LINEITEM)
