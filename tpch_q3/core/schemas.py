from datetime import date
from typing import Optional, List, Dict, Any
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from tpch_q3.core.config import settings


# =========================
# Enums
# =========================
class TableName(str, Enum):
    CUSTOMER = "customer"
    ORDERS = "orders"
    LINEITEM = "lineitem"


# =========================
# QUERY
# =========================
class Query3Request(BaseModel):
    # Dates stay strings here; the engine parses them and reports ParseError
    segment: str = Field(default=settings.DEFAULT_SEGMENT, min_length=1)
    date: str = settings.DEFAULT_DATE
    limit: Optional[int] = Field(default=None, ge=1)
    persist: bool = False


class ResultRowResponse(BaseModel):
    order_key: int
    revenue: float
    order_date: date
    ship_priority: int

    model_config = ConfigDict(from_attributes=True)


class Query3RunResponse(BaseModel):
    status: str
    run_id: str
    row_count: int = 0
    rows: List[ResultRowResponse] = []
    persisted: bool = False
    error_type: Optional[str] = None
    error: Optional[str] = None
    logs: List[Dict[str, Any]] = []
    duration_seconds: float


# =========================
# TABLES
# =========================
class TableUploadResponse(BaseModel):
    table: str
    read: int
    saved: int
    deleted: int


class TableCountsResponse(BaseModel):
    customer: int
    orders: int
    lineitem: int
