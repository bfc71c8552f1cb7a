from fastapi import APIRouter, Depends
from app.api.deps import require_json_content_type
from app.core.errors import PaymentAPIError
from app.schemas.common import ErrorResponse
from app.schemas.pricing import PricingParseRequest, PricingParseResponse
from app.services.pricing_service import parse_pricing_data

router = APIRouter(dependencies=[Depends(require_json_content_type)])


@router.post("/parse", response_model=PricingParseResponse, responses={400: {"model": ErrorResponse}})
async def parse_pricing(request: PricingParseRequest):
    """
    Validate the pricing data a merchant site hands to the checkout page.

    `data` may be a JSON object, a JSON string, or a base64 encoded JSON string.
    """
    result = parse_pricing_data(request.data)
    if not result.success:
        raise PaymentAPIError(result.error_message, code=result.error_code, status_code=400)
    return PricingParseResponse(data=result.data)
