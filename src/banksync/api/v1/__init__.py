"""API version 1 routes."""

from fastapi import APIRouter

from banksync.api.v1 import budgets, categories, connections, rules, sync, transactions

router = APIRouter(prefix="/api/v1")

# Include routers
router.include_router(connections.router)
router.include_router(sync.router)
router.include_router(rules.router)
router.include_router(categories.router)
router.include_router(transactions.router)
router.include_router(budgets.router)
