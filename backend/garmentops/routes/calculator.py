# backend/garmentops/routes/calculator.py
"""
DTG screen price calculator.

POST /api/calculator/screen-price
    {quantity, ink_cc, color?, sides?, side_choice?, size_front?, size_back?,
     has_neck_logo?, sleeve_print_count?, settings?: {...overrides}}

Read-only: nothing is written and no actor is required.
"""
from flask import Blueprint

from ..services.pricing_service import DTGSettings, ScreenInputs, calculate_screen_price
from . import error_response, get_json_payload, ok


calculator_bp = Blueprint("calculator", __name__, url_prefix="/api/calculator")


@calculator_bp.post("/screen-price")
def screen_price_route():
    payload = get_json_payload()
    try:
        settings = DTGSettings.from_dict(payload.pop("settings", None))
        inputs = ScreenInputs.from_dict(payload)
        result = calculate_screen_price(inputs, settings)
    except ValueError as e:
        return error_response(e)
    return ok({"result": result.to_dict(quantity=inputs.quantity)})
