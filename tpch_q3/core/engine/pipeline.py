import asyncio
import uuid
from typing import Dict, Any, List, Optional
from datetime import datetime
from enum import Enum
import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tpch_q3.core.config import settings
from tpch_q3.core.engine import aggregate, join, load, source, transform
from tpch_q3.core.engine.errors import EngineError
from tpch_q3.core.engine.records import (
    LineItemRevenue,
    OrderTuple,
    ResultRow,
    parse_date,
)


# -----------------------------------------------------------------------------
# PIPELINE MODULE - Orchestration
# Purpose: compile the fixed shipping priority plan and run it stage by stage,
#          scans concurrently, then joins, aggregation and materialization
# Why: one place decides order of execution, logging and atomic failure
# -----------------------------------------------------------------------------


class QueryStatus(str, Enum):
    """Query execution status."""

    COMPLETED = "completed"
    FAILED = "failed"


class QueryStep(Enum):
    """Stages of the query plan."""

    SCAN = "scan"
    JOIN = "join"
    AGGREGATE = "aggregate"
    MATERIALIZE = "materialize"
    PERSIST = "persist"


logger = logging.getLogger(__name__)


class QueryLogger:
    """Collects the log of one query run."""

    def __init__(self, run_id: str):
        """
        Initialize a logger scoped to one query run.

        Args:
            run_id: Identifier of the run being logged.

        Example:
            query_logger = QueryLogger(run_id)
        """
        self.run_id = run_id
        self.start_time = datetime.now()
        self.logs = []

    def log(self, step: str, message: str, level: str = "info"):
        """
        Log a query message.
        Why: the run summary carries the stage-by-stage log back to the caller.
        """
        timestamp = datetime.now().isoformat()
        log_entry = {
            "timestamp": timestamp,
            "step": step,
            "message": message,
            "level": level,
            "elapsed_seconds": (datetime.now() - self.start_time).total_seconds(),
        }
        self.logs.append(log_entry)

        # Also log to console
        if level == "error":
            logger.error(f"[Run {self.run_id}] {step}: {message}")
        elif level == "warning":
            logger.warning(f"[Run {self.run_id}] {step}: {message}")
        else:
            logger.info(f"[Run {self.run_id}] {step}: {message}")

    def get_logs(self) -> List[Dict[str, Any]]:
        return self.logs

    def duration_seconds(self) -> float:
        return (datetime.now() - self.start_time).total_seconds()


def new_run_id() -> str:
    return uuid.uuid4().hex


# =============================================================================
# PLAN
# =============================================================================


class Query3Plan:
    """
    The compiled shipping priority query.

    Holds the three scan pipelines and the execution knobs. The plan is built
    once per run; its stages carry that run's row counters.
    """

    def __init__(self, segment: str, date: str, partitions: int, batch_size: int):
        if not segment:
            raise ValueError("segment must not be empty")
        if partitions < 1:
            raise ValueError(f"partitions must be >= 1, got {partitions}")
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")

        # An invalid cutoff fails here, before any table is read
        self.cutoff = parse_date(date)
        self.segment = segment
        self.partitions = partitions
        self.batch_size = batch_size

        self.customers = transform.customer_pipeline(segment)
        self.orders = transform.order_pipeline(self.cutoff)
        self.line_items = transform.lineitem_pipeline(self.cutoff)

    def scans(self) -> List[transform.ScanPipeline]:
        return [self.customers, self.orders, self.line_items]


def compile_query3(
    segment: Optional[str] = None,
    date: Optional[str] = None,
    partitions: Optional[int] = None,
    batch_size: Optional[int] = None,
) -> Query3Plan:
    """Build the plan, filling unset parameters from settings."""
    return Query3Plan(
        segment=segment if segment is not None else settings.DEFAULT_SEGMENT,
        date=date if date is not None else settings.DEFAULT_DATE,
        partitions=partitions if partitions is not None else settings.JOIN_PARTITIONS,
        batch_size=batch_size if batch_size is not None else settings.FETCH_BATCH_SIZE,
    )


# =============================================================================
# EXECUTION
# =============================================================================


async def _scan(
    session_factory: async_sessionmaker,
    pipeline: transform.ScanPipeline,
    batch_size: int,
) -> List[Any]:
    # Every scan gets its own session; sessions are not safe to share across tasks
    async with session_factory() as session:
        return await source.run_scan_pipeline(session, pipeline, batch_size)


def join_customer_orders(
    customer_keys: List[int], orders: List[OrderTuple], partitions: int
) -> List[OrderTuple]:
    """Orders of qualifying customers; the customer key is dropped after the match."""
    pairs = join.hash_join(
        customer_keys,
        lambda cust_key: cust_key,
        orders,
        lambda order: order.cust_key,
        partitions,
    )
    return [order for _, order in pairs]


def join_order_line_items(
    orders: List[OrderTuple], line_items: List[LineItemRevenue], partitions: int
) -> List[ResultRow]:
    """One ResultRow per (order, line item) match, carrying that line item's revenue."""
    pairs = join.hash_join(
        orders,
        lambda order: order.order_key,
        line_items,
        lambda item: item.order_key,
        partitions,
    )
    return [
        ResultRow(
            order_key=item.order_key,
            revenue=item.revenue,
            order_date=order.order_date,
            ship_priority=order.ship_priority,
        )
        for order, item in pairs
    ]


async def execute_query3(
    session_factory: async_sessionmaker,
    plan: Query3Plan,
    limit: Optional[int] = None,
    query_logger: Optional[QueryLogger] = None,
) -> List[ResultRow]:
    """
    Run a compiled plan to completion.

    All three table layouts are validated first. The scans then run
    concurrently, followed by the two joins, the aggregation and the final
    sort. Any EngineError propagates unchanged; nothing partial is returned.

    Args:
        session_factory: Creates one AsyncSession per concurrent scan
        plan: Compiled query (see compile_query3)
        limit: Keep only the top N rows
        query_logger: Receives the stage log (a fresh one when None)

    Returns:
        Result rows ordered by revenue desc, order date asc, order key asc
    """
    query_logger = query_logger or QueryLogger(new_run_id())

    # STEP 1: SCAN
    # Every layout is checked before any scan starts, a mismatch reads no rows
    async with session_factory() as session:
        for scan in plan.scans():
            await source.validate_schema(session, scan.schema)
    query_logger.log(QueryStep.SCAN.value, "Table layouts validated")

    query_logger.log(
        QueryStep.SCAN.value,
        f"Scanning customer, orders, lineitem (segment={plan.segment!r}, cutoff={plan.cutoff})",
    )
    tasks = [
        asyncio.ensure_future(_scan(session_factory, scan, plan.batch_size))
        for scan in plan.scans()
    ]
    try:
        customer_keys, orders, line_items = await asyncio.gather(*tasks)
    except BaseException:
        # First failure fails the query, the other scans are stopped
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
    for scan in plan.scans():
        for line in scan.describe():
            query_logger.log(QueryStep.SCAN.value, f"[{scan.name}] {line}")

    # STEP 2: JOIN
    customer_orders = join_customer_orders(customer_keys, orders, plan.partitions)
    query_logger.log(
        QueryStep.JOIN.value,
        f"Join customers with orders: {len(customer_orders)} rows",
    )
    joined = join_order_line_items(customer_orders, line_items, plan.partitions)
    query_logger.log(
        QueryStep.JOIN.value, f"Join CO with line items: {len(joined)} rows"
    )

    # STEP 3: AGGREGATE
    aggregated = aggregate.aggregate_revenue(joined, plan.partitions)
    query_logger.log(
        QueryStep.AGGREGATE.value, f"Aggregate revenue: {len(aggregated)} groups"
    )

    # STEP 4: MATERIALIZE
    rows = load.materialize(aggregated, limit)
    query_logger.log(QueryStep.MATERIALIZE.value, f"Collected {len(rows)} rows")

    return rows


async def run_query3_pipeline(
    session_factory: async_sessionmaker,
    db: AsyncSession,
    segment: Optional[str] = None,
    date: Optional[str] = None,
    limit: Optional[int] = None,
    persist: bool = False,
) -> Dict[str, Any]:
    """
    Run the query and report the run like a pipeline job.

    This compiles the plan, executes it and, when asked, writes the result to
    the q3_result sink. Engine failures are reported as a FAILED run with no
    rows; nothing is persisted for a failed run.
    Why: API clients get the stage log and timing alongside the answer.

    Args:
        session_factory: Creates sessions for the concurrent scans
        db: Session used for persisting the result
        segment: Market segment (settings.DEFAULT_SEGMENT when None)
        date: Cutoff date YYYY-MM-DD (settings.DEFAULT_DATE when None)
        limit: Keep only the top N rows
        persist: Write the result to the sink

    Returns:
        Run summary with status, rows and logs
    """
    run_id = new_run_id()
    query_logger = QueryLogger(run_id)
    query_logger.log("pipeline", "Starting shipping priority query...")

    try:
        plan = compile_query3(segment=segment, date=date)
        rows = await execute_query3(session_factory, plan, limit, query_logger)

        if persist:
            written = await load.write_results(rows, db, run_id)
            query_logger.log(QueryStep.PERSIST.value, f"Persisted {written} rows")

    except EngineError as e:
        query_logger.log("pipeline", f"Query failed: {type(e).__name__}: {e}", "error")
        return {
            "status": QueryStatus.FAILED,
            "run_id": run_id,
            "error_type": type(e).__name__,
            "error": str(e),
            "logs": query_logger.get_logs(),
            "duration_seconds": query_logger.duration_seconds(),
        }

    query_logger.log("pipeline", "Query completed successfully")
    return {
        "status": QueryStatus.COMPLETED,
        "run_id": run_id,
        "row_count": len(rows),
        "rows": rows,
        "persisted": persist,
        "logs": query_logger.get_logs(),
        "duration_seconds": query_logger.duration_seconds(),
    }
