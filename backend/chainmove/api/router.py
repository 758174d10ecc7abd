"""
Main API router that includes all route modules.
"""
from fastapi import APIRouter
from chainmove.api.routes import auth, driver, payments

api_router = APIRouter()

# Include all route modules
api_router.include_router(auth.router)
api_router.include_router(driver.router)
api_router.include_router(payments.router)
