from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tpch_q3.core import schemas
from tpch_q3.core.config import settings
from tpch_q3.core.database import get_db, get_session_factory
from tpch_q3.core.engine import load, pipeline
from tpch_q3.core.engine.errors import (
    AggregationInvariantError,
    EngineError,
    ParseError,
    SchemaMismatchError,
)

router = APIRouter(prefix="/query", tags=["Query"])

db_dep = Annotated[AsyncSession, Depends(get_db)]
factory_dep = Annotated[async_sessionmaker, Depends(get_session_factory)]


def engine_error_status(error: EngineError) -> int:
    if isinstance(error, ParseError):
        return status.HTTP_422_UNPROCESSABLE_ENTITY
    if isinstance(error, SchemaMismatchError):
        return status.HTTP_409_CONFLICT
    if isinstance(error, AggregationInvariantError):
        return status.HTTP_500_INTERNAL_SERVER_ERROR
    return status.HTTP_400_BAD_REQUEST


@router.get("/q3", response_model=List[schemas.ResultRowResponse])
async def shipping_priority(
    session_factory: factory_dep,
    segment: Annotated[str, Query(min_length=1)] = settings.DEFAULT_SEGMENT,
    date: str = settings.DEFAULT_DATE,
    limit: Annotated[Optional[int], Query(ge=1)] = None,
):
    """
    Run the shipping priority query and return the ordered rows:
    revenue desc, order date asc, order key asc.
    """
    try:
        plan = pipeline.compile_query3(segment=segment, date=date)
        return await pipeline.execute_query3(session_factory, plan, limit)
    except EngineError as e:
        raise HTTPException(engine_error_status(e), f"{type(e).__name__}: {e}")


@router.post("/q3/run", response_model=schemas.Query3RunResponse)
async def run_shipping_priority(
    payload: schemas.Query3Request,
    session_factory: factory_dep,
    db: db_dep,
):
    """
    Run the query as a pipeline job and return its summary:
    status, rows, stage logs and timing. Set persist to keep the rows.
    """
    result = await pipeline.run_query3_pipeline(
        session_factory,
        db,
        segment=payload.segment,
        date=payload.date,
        limit=payload.limit,
        persist=payload.persist,
    )
    rows = [schemas.ResultRowResponse.model_validate(row) for row in result.pop("rows", [])]
    result["status"] = result["status"].value
    return schemas.Query3RunResponse(**result, rows=rows)


@router.get("/q3/results", response_model=List[schemas.ResultRowResponse])
async def persisted_results(db: db_dep, run_id: Optional[str] = None):
    """Return the rows of a persisted run (the latest one when run_id is omitted)."""
    rows = await load.read_results(db, run_id)
    if run_id is not None and not rows:
        raise HTTPException(status.HTTP_404_NOT_FOUND, f"No results for run {run_id}")
    return rows
