from datetime import datetime, timezone
from fastapi import APIRouter
from app.api.endpoints import payment, pricing

api_router = APIRouter()
api_router.include_router(payment.router, prefix="/payment", tags=["payment"])
api_router.include_router(pricing.router, prefix="/pricing", tags=["pricing"])

@api_router.get("/health", tags=["health"])
async def health_check():
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}
