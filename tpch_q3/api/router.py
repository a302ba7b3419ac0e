from fastapi import APIRouter
from tpch_q3.api.endpoints import query, tables

api_router = APIRouter()

# Combine all sub-routers into one
api_router.include_router(query.router)
api_router.include_router(tables.router)
