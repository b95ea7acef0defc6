from fastapi import APIRouter

from app.routers import leave, payroll

# Single hub mounted by main.py under settings.api_prefix
api_router = APIRouter()
api_router.include_router(leave.router)
api_router.include_router(payroll.router)
