from fastapi import APIRouter

from app.api.routers import auth, contracts, kyc, payments, properties, users, webhooks

api_router = APIRouter()

api_router.include_router(auth.router)
api_router.include_router(properties.router)
api_router.include_router(contracts.router)
api_router.include_router(payments.router)
api_router.include_router(kyc.router)
api_router.include_router(users.router)
api_router.include_router(webhooks.router)
