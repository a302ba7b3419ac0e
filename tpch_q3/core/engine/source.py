# tpch_q3/core/engine/source.py
"""
SOURCE MODULE - Read one table as a stream of positional records

Purpose:
    1. Check that the stored table has exactly the column layout the plan reads by position
    2. Stream its rows in batches (server-side cursor where the driver has one)
    3. Push every batch through a scan pipeline (filter → project → map)

Data Flow:
    SQL table → validate_schema() → read_table() → [Record, ...] batches
                                                          ↓
                                               run_scan_pipeline() → typed tuples
"""

import contextlib
import logging
from typing import Any, AsyncIterator, List

from sqlalchemy import column, inspect, select, table
from sqlalchemy.exc import NoSuchTableError
from sqlalchemy.ext.asyncio import AsyncSession

from tpch_q3.core.engine.errors import SchemaMismatchError
from tpch_q3.core.engine.records import Record, TableSchema
from tpch_q3.core.engine.transform import ScanPipeline

logger = logging.getLogger(__name__)


async def get_table_columns(session: AsyncSession, table_name: str) -> List[str]:
    """
    Reflect the stored column names of a table, in physical order.

    Raises:
        SchemaMismatchError: the table does not exist
    """
    conn = await session.connection()

    def _columns(sync_conn) -> List[str]:
        return [col["name"] for col in inspect(sync_conn).get_columns(table_name)]

    try:
        columns = await conn.run_sync(_columns)
    except NoSuchTableError:
        raise SchemaMismatchError(table_name, "table does not exist") from None

    # Some backends report no columns instead of raising for a missing table
    if not columns:
        raise SchemaMismatchError(table_name, "table does not exist")
    return columns


async def validate_schema(session: AsyncSession, schema: TableSchema) -> None:
    """
    Compare the stored layout against the expected positional schema.

    Names are compared exactly, position by position. The scan selects
    these same names, so a layout that passes here is one it can read.

    Raises:
        SchemaMismatchError: column count or any column name/position differs
    """
    actual = await get_table_columns(session, schema.name)
    expected = list(schema.fields)

    if len(actual) != len(expected):
        raise SchemaMismatchError(
            schema.name,
            f"expected {len(expected)} columns {expected}, found {len(actual)} {actual}",
        )

    for position, (want, got) in enumerate(zip(expected, actual)):
        if want != got:
            raise SchemaMismatchError(
                schema.name,
                f"column {position} should be {want!r}, found {got!r}",
            )


async def read_table(
    session: AsyncSession, schema: TableSchema, batch_size: int
) -> AsyncIterator[List[Record]]:
    """
    Stream a table as batches of Records.

    The caller validates the layout first (see validate_schema); columns are
    selected by name in schema order.

    Args:
        session: Session owned by this scan, never shared with another task
        schema: Expected table layout; columns are selected in this order
        batch_size: Rows fetched per batch

    Yields:
        Lists of at most batch_size Records
    """
    stmt = select(*[column(name) for name in schema.fields]).select_from(
        table(schema.name)
    )
    result = await session.stream(stmt)
    try:
        async for partition in result.partitions(batch_size):
            yield [Record(tuple(row)) for row in partition]
    finally:
        await result.close()


async def run_scan_pipeline(
    session: AsyncSession, pipeline: ScanPipeline, batch_size: int
) -> List[Any]:
    """
    Read a table and push every batch through the pipeline's stages.

    Only the pipeline's output (filtered, projected, typed) is kept in
    memory; full records are dropped batch by batch.

    Returns:
        The pipeline output for the whole table
    """
    output: List[Any] = []
    batches = 0

    # Closed on error too, the cursor never outlives the scan
    async with contextlib.aclosing(
        read_table(session, pipeline.schema, batch_size)
    ) as batches_iter:
        async for batch in batches_iter:
            output.extend(pipeline.apply(batch))
            batches += 1

    logger.info(
        f"Scanned {pipeline.name}: {batches} batches, {len(output)} rows kept"
    )
    return output
