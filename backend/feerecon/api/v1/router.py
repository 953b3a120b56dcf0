# feerecon/api/v1/router.py
# Registers all endpoint routers under /api/v1

from fastapi import APIRouter
from feerecon.api.v1.endpoints import (
    fees,
    payments,
    students,
)

api_router = APIRouter()

api_router.include_router(fees.router, prefix="/fees")
api_router.include_router(payments.router)
api_router.include_router(students.router)
