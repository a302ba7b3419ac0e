import pytest

from tpch_q3.core import models
from tpch_q3.core.engine import ingest
from tpch_q3.core.engine.errors import IngestError, SchemaMismatchError
from tpch_rows import customer, line_item, tbl_line


def test_read_table_file_drops_trailing_delimiter_and_blank_lines():
    content = (
        tbl_line(customer(1)) + "\n\n" + tbl_line(customer(2, "MACHINERY")) + "\n"
    ).encode()
    rows = ingest.read_table_file(content)
    assert len(rows) == 2
    assert len(rows[0]) == 8
    assert rows[1][6] == "MACHINERY"


def test_read_csv_file():
    content = b'1,"Customer#1","Street 1, Apt 2",15,25-989,711.56,BUILDING,ok\n'
    rows = ingest.read_table_file(content, delimiter=",")
    assert rows == [
        ["1", "Customer#1", "Street 1, Apt 2", "15", "25-989", "711.56", "BUILDING", "ok"]
    ]


def test_to_table_rows_coerces_column_types():
    raw = ingest.read_table_file(tbl_line(line_item(7, 2, 1234.5, 0.04, "1995-03-20")).encode())
    rows = ingest.to_table_rows(models.LineItem, raw)

    assert rows[0]["l_orderkey"] == 7
    assert rows[0]["l_linenumber"] == 2
    assert rows[0]["l_extendedprice"] == 1234.5
    assert rows[0]["l_discount"] == 0.04
    assert rows[0]["l_shipdate"] == "1995-03-20"


def test_wrong_field_count_is_schema_mismatch():
    with pytest.raises(SchemaMismatchError):
        ingest.to_table_rows(models.Customer, [["1", "Customer#1"]])


def test_bad_value_is_ingest_error():
    raw = [list(map(str, customer(1).values()))]
    raw[0][0] = "one"
    with pytest.raises(IngestError, match="c_custkey"):
        ingest.to_table_rows(models.Customer, raw)


@pytest.mark.asyncio
async def test_ingest_table_file_and_replace(db_session):
    content = "\n".join(tbl_line(customer(i)) for i in range(1, 4)).encode()

    result = await ingest.ingest_table_file("customer", content, db_session)
    assert result == {"table": "customer", "read": 3, "saved": 3, "deleted": 0}

    result = await ingest.ingest_table_file(
        "customer", tbl_line(customer(9)).encode(), db_session, replace=True
    )
    assert result["saved"] == 1
    assert result["deleted"] == 3

    counts = await ingest.count_rows(db_session)
    assert counts == {"customer": 1, "orders": 0, "lineitem": 0}
