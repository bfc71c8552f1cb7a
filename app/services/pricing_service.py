import re
import json
import math
import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Any, Optional

from app.schemas.pricing import AddonPackage, PricingData, PricingPlan

logger = logging.getLogger(__name__)

REQUIRED_PLAN_COUNT = 3
BASE64_PATTERN = re.compile(r"^[A-Za-z0-9+/]+=*$")


@dataclass
class ParseResult:
    success: bool
    data: Optional[PricingData] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None


def _decode_base64(value: str) -> str:
    try:
        raw = base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        raise ValueError("Invalid base64 string")
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        raise ValueError("Base64 payload is not UTF-8 text")


def _reject_constant(name: str) -> Any:
    # JSON.parse has no Infinity or NaN
    raise ValueError(f"Unexpected token {name} in JSON")


def _loads(text: str) -> Any:
    return json.loads(text, parse_constant=_reject_constant)


def _load(raw: Any) -> Any:
    if not isinstance(raw, str):
        return raw

    text = raw.strip()
    starts_with_json = text.startswith("{") or text.startswith("[")
    looks_like_base64 = not starts_with_json and bool(BASE64_PATTERN.match(text))

    if looks_like_base64 or (not starts_with_json and len(text) > 50):
        try:
            return _loads(_decode_base64(text))
        except ValueError as base64_error:
            try:
                return _loads(text)
            except ValueError:
                raise ValueError(f"Failed to parse as base64 or JSON: {base64_error}")

    return _loads(text)


def _is_positive_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    if isinstance(value, float) and not math.isfinite(value):
        return False
    return value > 0


def _validate_plan(plan: Any, index: int) -> Optional[str]:
    if not isinstance(plan, dict):
        return f"Invalid JSON: plan {index} must be an object"
    if not plan.get("plan_id") or not isinstance(plan.get("plan_id"), str):
        return f"Invalid JSON: plan {index} missing required field 'plan_id' (string)"
    if not plan.get("name") or not isinstance(plan.get("name"), str):
        return f"Invalid JSON: plan {index} missing required field 'name' (string)"
    if not _is_positive_number(plan.get("monthly_amount")):
        return f"Invalid JSON: plan {index} missing required field 'monthly_amount' (positive number)"
    if not _is_positive_number(plan.get("annual_amount")):
        return f"Invalid JSON: plan {index} missing required field 'annual_amount' (positive number)"

    features = plan.get("features")
    if not isinstance(features, list):
        return f"Invalid JSON: plan {index} missing required field 'features' (array)"
    if not features:
        return f"Invalid JSON: plan {index} features array cannot be empty"
    for j, feature in enumerate(features):
        if not isinstance(feature, str):
            return f"Invalid JSON: plan {index} feature {j} must be a string"
    return None


def _validate_addon(addon: Any, index: int) -> Optional[str]:
    if not isinstance(addon, dict):
        return f"Invalid JSON: addon {index} must be an object"
    for field in ("addon_id", "name", "description"):
        if not addon.get(field) or not isinstance(addon.get(field), str):
            return f"Invalid JSON: addon {index} missing required field '{field}' (string)"
    for field in ("monthly_amount", "annual_amount"):
        if not _is_positive_number(addon.get(field)):
            return f"Invalid JSON: addon {index} missing required field '{field}' (positive number)"
    return None


def validate_pricing_data(data: Any) -> Optional[str]:
    """Returns an error message for invalid pricing data, None if valid."""
    if not isinstance(data, dict):
        return "Invalid JSON: data must be an object"

    if not data.get("redirect_url") or not isinstance(data.get("redirect_url"), str):
        return "Invalid JSON: redirect_url is required and must be a string"

    plans = data.get("plans")
    if not isinstance(plans, list):
        return "Invalid JSON: plans must be an array"
    if len(plans) != REQUIRED_PLAN_COUNT:
        return f"Invalid JSON: exactly {REQUIRED_PLAN_COUNT} plans required, got {len(plans)}"
    for i, plan in enumerate(plans):
        error = _validate_plan(plan, i)
        if error:
            return error

    addons = data.get("addons")
    if addons:
        if not isinstance(addons, list):
            return "Invalid JSON: addons must be an array"
        for i, addon in enumerate(addons):
            error = _validate_addon(addon, i)
            if error:
                return error
    return None


def parse_pricing_data(raw: Any) -> ParseResult:
    """
    Parse and validate pricing data sent by the merchant site.

    Accepts a decoded JSON object, a JSON string, or a base64 encoded JSON
    string (UTF-8).
    """
    try:
        data = _load(raw)
    except ValueError as e:
        logger.warning(f"Pricing data could not be decoded: {e}")
        return ParseResult(success=False, error_code="INVALID_JSON", error_message=str(e))

    error = validate_pricing_data(data)
    if error:
        return ParseResult(success=False, error_code="INVALID_JSON", error_message=error)

    provider = data.get("payment_provider")
    if isinstance(provider, str) and provider.lower() in ("razorpay", "pinelabs"):
        provider = provider.lower()
    else:
        provider = None

    pricing = PricingData(
        plans=[
            PricingPlan(
                plan_id=plan["plan_id"],
                name=plan["name"],
                monthlyAmount=plan["monthly_amount"],
                annualAmount=plan["annual_amount"],
                features=plan["features"],
            )
            for plan in data["plans"]
        ],
        addons=[
            AddonPackage(
                addon_id=addon["addon_id"],
                name=addon["name"],
                description=addon["description"],
                monthlyAmount=addon["monthly_amount"],
                annualAmount=addon["annual_amount"],
            )
            for addon in data["addons"]
        ] if data.get("addons") else None,
        redirectUrl=data["redirect_url"],
        paymentProvider=provider,
    )
    return ParseResult(success=True, data=pricing)
