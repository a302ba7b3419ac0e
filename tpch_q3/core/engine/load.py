from typing import Iterable, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tpch_q3.core import models
from tpch_q3.core.engine.records import ResultRow, parse_date


# -----------------------------------------------------------------------------
# LOAD MODULE
# Purpose: realize the aggregated rows in their final order and optionally persist them.
# Why: the query answer is only defined once every upstream row has been folded.
# -----------------------------------------------------------------------------


def result_sort_key(row: ResultRow):
    # revenue desc, order date asc, order key asc as the deterministic tiebreak
    return (-row.revenue, row.order_date, row.order_key)


def materialize(rows: Iterable[ResultRow], limit: Optional[int] = None) -> List[ResultRow]:
    """
    Collect and order the query result.
    Why: forces the whole upstream pipeline; ties on revenue and date are broken by order key.

    Args:
        rows: Aggregated rows, in any order.
        limit: Keep only the first N rows (None keeps all).

    Returns:
        Rows sorted by revenue descending, order date ascending, order key ascending.

    Example:
        ordered = materialize(aggregated, limit=10)
    """
    if limit is not None and limit < 1:
        raise ValueError(f"limit must be >= 1, got {limit}")

    ordered = sorted(rows, key=result_sort_key)
    if limit is not None:
        ordered = ordered[:limit]
    return ordered


async def write_results(
    rows: List[ResultRow], db: AsyncSession, run_id: str
) -> int:
    """
    Write an ordered result to the q3_result sink.
    Why: lets clients fetch a finished run without recomputing it.

    Args:
        rows: Result rows, already in final order.
        db: Async database session.
        run_id: Identifier shared by all rows of this run.

    Returns:
        Number of rows written.
    """
    # Re-running with the same run_id replaces the earlier rows
    await db.execute(delete(models.QueryResult).where(models.QueryResult.run_id == run_id))

    db.add_all(
        [
            models.QueryResult(
                run_id=run_id,
                position=position,
                l_orderkey=row.order_key,
                revenue=row.revenue,
                o_orderdate=row.order_date.isoformat(),
                o_shippriority=row.ship_priority,
            )
            for position, row in enumerate(rows)
        ]
    )
    await db.commit()

    return len(rows)


async def get_latest_run_id(db: AsyncSession) -> Optional[str]:
    stmt = (
        select(models.QueryResult.run_id)
        .group_by(models.QueryResult.run_id)
        .order_by(func.max(models.QueryResult.id).desc())
        .limit(1)
    )
    result = await db.execute(stmt)
    return result.scalar()


async def read_results(
    db: AsyncSession, run_id: Optional[str] = None
) -> List[ResultRow]:
    """
    Read a persisted run back in its stored order.
    Why: the sink is the only place results outlive the request that computed them.

    Args:
        db: Async database session.
        run_id: Run to read; the most recently written run when None.

    Returns:
        Result rows ordered by position (empty if there is no such run).
    """
    if run_id is None:
        run_id = await get_latest_run_id(db)
        if run_id is None:
            return []

    stmt = (
        select(models.QueryResult)
        .where(models.QueryResult.run_id == run_id)
        .order_by(models.QueryResult.position)
    )
    result = await db.execute(stmt)

    return [
        ResultRow(
            order_key=stored.l_orderkey,
            revenue=stored.revenue,
            order_date=parse_date(stored.o_orderdate),
            ship_priority=stored.o_shippriority,
        )
        for stored in result.scalars().all()
    ]
