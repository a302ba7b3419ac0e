from typing import Annotated

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tpch_q3.core import schemas
from tpch_q3.core.database import get_db
from tpch_q3.core.engine import ingest, source
from tpch_q3.core.engine.errors import IngestError, SchemaMismatchError
from tpch_q3.core.engine.records import CUSTOMER, LINEITEM, ORDERS

router = APIRouter(prefix="/tables", tags=["Tables"])

db_dep = Annotated[AsyncSession, Depends(get_db)]


@router.get("", response_model=schemas.TableCountsResponse)
async def table_counts(db: db_dep):
    """Row counts of customer, orders and lineitem."""
    return await ingest.count_rows(db)


@router.post("/{table_name}/upload", response_model=schemas.TableUploadResponse)
async def upload_table(
    table_name: str,
    db: db_dep,
    file: UploadFile = File(...),
    replace: bool = False,
    delimiter: str = "|",
):
    """
    Load a dbgen .tbl file (or a CSV with delimiter=",") into one table.
    With replace=true the current table contents are deleted first.
    """
    if table_name not in {t.value for t in schemas.TableName}:
        raise HTTPException(status.HTTP_404_NOT_FOUND, f"Unknown table {table_name}")

    file_content = await file.read()
    if not file_content:
        raise HTTPException(
            status.HTTP_400_BAD_REQUEST, "Uploaded file is empty or unreadable"
        )

    try:
        return await ingest.ingest_table_file(
            table_name, file_content, db, delimiter=delimiter, replace=replace
        )
    except (SchemaMismatchError, IngestError) as e:
        raise HTTPException(status.HTTP_422_UNPROCESSABLE_ENTITY, str(e))
    except IntegrityError:
        raise HTTPException(
            status.HTTP_409_CONFLICT,
            f"Rows already exist in {table_name}, upload with replace=true",
        )


@router.get("/health")
async def health_check(db: db_dep):
    """Database connectivity and the column layout of every table the query reads."""
    health_status = {"overall_status": "healthy", "checks": []}

    try:
        await db.execute(text("SELECT 1"))
        health_status["checks"].append(
            {
                "name": "database_connectivity",
                "status": "pass",
                "message": "Database connection successful",
            }
        )
    except Exception as e:
        health_status["checks"].append(
            {
                "name": "database_connectivity",
                "status": "fail",
                "message": f"Database connection failed: {e}",
            }
        )
        health_status["overall_status"] = "unhealthy"
        return health_status

    for schema in (CUSTOMER, ORDERS, LINEITEM):
        try:
            await source.validate_schema(db, schema)
            health_status["checks"].append(
                {
                    "name": f"{schema.name}_schema",
                    "status": "pass",
                    "message": f"{len(schema.fields)} columns in expected order",
                }
            )
        except SchemaMismatchError as e:
            health_status["checks"].append(
                {"name": f"{schema.name}_schema", "status": "fail", "message": str(e)}
            )
            health_status["overall_status"] = "unhealthy"

    return health_status
