from fastapi import APIRouter

from .balances import router as balances_router
from .timers import router as timers_router
from .transactions import router as transactions_router

api_router = APIRouter()
api_router.include_router(balances_router, prefix="/balances", tags=["balances"])
api_router.include_router(
    transactions_router, prefix="/transactions", tags=["transactions"]
)
api_router.include_router(timers_router, prefix="/timers", tags=["timers"])
