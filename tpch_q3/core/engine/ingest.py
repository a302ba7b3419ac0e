# tpch_q3/core/engine/ingest.py
"""
INGEST MODULE - Load TPC-H table files into the database

Purpose:
    1. Read dbgen .tbl files (pipe separated, trailing "|") or plain CSV
    2. Check every row has the table's column count
    3. Convert values to the column types of the table model
    4. Bulk insert the rows (optionally replacing the table contents)

Data Flow:
    file bytes → read_table_file() → to_table_rows() → save_to_db() → customer / orders / lineitem

Dates are stored as given. They are parsed when the query reads them, so a
malformed date fails the query, not the upload.
"""

import csv
import io
import logging
from typing import Any, Dict, List, Type

from sqlalchemy import delete, func, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from tpch_q3.core import models
from tpch_q3.core.config import settings
from tpch_q3.core.database import Base
from tpch_q3.core.engine.errors import IngestError, SchemaMismatchError

logger = logging.getLogger(__name__)


# ============================================================================
# STEP 1: READ FILE
# ============================================================================


def read_table_file(file_content: bytes, delimiter: str = "|") -> List[List[str]]:
    """
    Read a delimited table file into raw string rows.

    Handles:
        - dbgen's trailing delimiter ("1|Customer#1|...|comment|")
        - Empty lines
        - UTF-8, with a latin-1 fallback for old exports

    Args:
        file_content: Raw bytes of the uploaded file
        delimiter: Field separator ("|" for dbgen, "," for CSV)

    Returns:
        List of rows, each a list of field strings

    Example:
        b"1|Customer#000000001|IVhzIApeRb|15|25-989-741-2988|711.56|BUILDING|regular|\n"
        → [["1", "Customer#000000001", "IVhzIApeRb", "15", "25-989-741-2988", "711.56", "BUILDING", "regular"]]
    """
    try:
        text = file_content.decode("utf-8")
    except UnicodeDecodeError:
        text = file_content.decode("latin-1")

    quoting = csv.QUOTE_NONE if delimiter == "|" else csv.QUOTE_MINIMAL
    reader = csv.reader(io.StringIO(text), delimiter=delimiter, quoting=quoting)

    rows = []
    for row in reader:
        if not any(field.strip() for field in row):
            continue
        if row and row[-1] == "":
            row = row[:-1]
        rows.append(row)

    logger.info(f"Read {len(rows)} rows from table file")
    return rows


# ============================================================================
# STEP 2: CONVERT TO TABLE ROWS
# ============================================================================


def _coerce(value: str, python_type: type) -> Any:
    if python_type is int:
        return int(value)
    if python_type is float:
        return float(value)
    return value


def to_table_rows(model: Type[Base], raw_rows: List[List[str]]) -> List[Dict[str, Any]]:
    """
    Convert raw string rows to column dicts for the given table model.

    Values are matched to columns by position, in the model's column order.

    Raises:
        SchemaMismatchError: a row does not have exactly one value per column
        IngestError: a value cannot be converted to its column type
    """
    table = model.__table__
    columns = [(col.name, col.type.python_type) for col in table.columns]

    rows = []
    for line_number, raw in enumerate(raw_rows, start=1):
        if len(raw) != len(columns):
            raise SchemaMismatchError(
                table.name,
                f"row {line_number} has {len(raw)} fields, expected {len(columns)}",
            )

        row = {}
        for (name, python_type), value in zip(columns, raw):
            try:
                row[name] = _coerce(value.strip(), python_type)
            except ValueError:
                raise IngestError(
                    f"{table.name} row {line_number}: {name}={value!r} is not a valid {python_type.__name__}"
                ) from None
        rows.append(row)

    return rows


# ============================================================================
# STEP 3: SAVE TO DATABASE
# ============================================================================


async def save_to_db(
    model: Type[Base],
    rows: List[Dict[str, Any]],
    db: AsyncSession,
    replace: bool = False,
) -> Dict[str, int]:
    """
    Bulk insert rows into a table in one transaction.

    Args:
        model: Table model (models.Customer, models.Order, models.LineItem)
        rows: Column dicts from to_table_rows()
        db: Database session
        replace: Delete the current table contents first

    Returns:
        {"saved": rows inserted, "deleted": rows removed by replace}
    """
    deleted = 0
    try:
        if replace:
            result = await db.execute(delete(model))
            deleted = result.rowcount or 0

        chunk_size = settings.INGEST_CHUNK_SIZE
        for start in range(0, len(rows), chunk_size):
            await db.execute(insert(model), rows[start : start + chunk_size])

        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(f"Saved {len(rows)} rows into {model.__tablename__} (deleted {deleted})")
    return {"saved": len(rows), "deleted": deleted}


async def ingest_table_file(
    table_name: str,
    file_content: bytes,
    db: AsyncSession,
    delimiter: str = "|",
    replace: bool = False,
) -> Dict[str, Any]:
    """
    Full ingest of one table file: read → convert → save.

    Raises:
        KeyError: unknown table name
        SchemaMismatchError / IngestError: the file does not fit the table
    """
    model = models.TABLE_MODELS[table_name]

    raw_rows = read_table_file(file_content, delimiter)
    rows = to_table_rows(model, raw_rows)
    result = await save_to_db(model, rows, db, replace)

    return {"table": table_name, "read": len(raw_rows), **result}


async def count_rows(db: AsyncSession) -> Dict[str, int]:
    """Row count of every TPC-H table."""
    counts = {}
    for name, model in models.TABLE_MODELS.items():
        result = await db.execute(select(func.count()).select_from(model))
        counts[name] = result.scalar() or 0
    return counts
