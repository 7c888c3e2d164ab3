import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request

from trustgate.dependencies import get_validator
from trustgate.middleware.validation import error_response, validate_user_id
from trustgate.models.game import ValidateActionRequest
from trustgate.routers.metrics import action_validations, penalties_issued
from trustgate.services.antigaming_service import AntiGamingValidator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/actions", tags=["actions"])


@router.post("/validate")
async def validate(
    request: Request,
    validator: Annotated[AntiGamingValidator, Depends(get_validator)],
):
    try:
        body = await request.json()
    except Exception:
        return error_response(400, "INVALID_BODY", "Invalid request body")

    try:
        req = ValidateActionRequest.model_validate(body)
    except Exception:
        return error_response(400, "INVALID_BODY", "Invalid request body")

    user_id, err = validate_user_id(req.user_id)
    if err:
        return error_response(400, "INVALID_FIELD", err)

    result = await validator.validate_action(user_id, req.action)

    if not result.valid:
        outcome = "rejected"
    elif result.suspicious:
        outcome = "suspicious"
    else:
        outcome = "accepted"
    action_validations.labels(outcome=outcome).inc()
    for penalty in result.penalties:
        penalties_issued.labels(type=penalty.type.value).inc()

    return result.model_dump(by_alias=True)


@router.get("/behavior/{user_id}")
async def get_behavior(
    user_id: str,
    validator: Annotated[AntiGamingValidator, Depends(get_validator)],
):
    user_id, err = validate_user_id(user_id)
    if err:
        return error_response(400, "INVALID_FIELD", err)

    try:
        behavior = await validator.behavior(user_id)
    except Exception:
        logger.exception("Failed to load behavior profile")
        return error_response(500, "INTERNAL_ERROR", "Failed to load behavior profile")

    if behavior is None:
        return error_response(404, "NOT_FOUND", "No behavior profile for user")
    return behavior.model_dump(by_alias=True, mode="json")


@router.delete("/behavior/{user_id}")
async def reset_behavior(
    user_id: str,
    validator: Annotated[AntiGamingValidator, Depends(get_validator)],
):
    user_id, err = validate_user_id(user_id)
    if err:
        return error_response(400, "INVALID_FIELD", err)

    try:
        await validator.reset_behavior(user_id)
    except Exception:
        logger.exception("Failed to reset behavior profile")
        return error_response(500, "INTERNAL_ERROR", "Failed to reset behavior profile")

    return {"success": True}
