from typing import Any, Dict
from fastapi import Request
from app.core.errors import PaymentAPIError
from app.services.payment_service import PaymentService

# Services are built once in create_app() and kept on app.state, so tests can
# hand in isolated stores and provider registries.

def get_payment_service(request: Request) -> PaymentService:
    return request.app.state.payment_service

async def require_json_content_type(request: Request) -> None:
    if request.method in ("POST", "PUT", "PATCH"):
        content_type = request.headers.get("content-type", "")
        if "application/json" not in content_type.lower():
            raise PaymentAPIError(
                "Content-Type must be application/json",
                code="INVALID_CONTENT_TYPE",
                status_code=400,
            )

async def read_json_object(request: Request) -> Dict[str, Any]:
    """Decode the request body, which must be a JSON object."""
    try:
        data = await request.json()
    except ValueError:
        data = None
    if not isinstance(data, dict):
        raise PaymentAPIError(
            "Request body must be a valid JSON object",
            code="INVALID_JSON",
            status_code=400,
        )
    return data
