import logging
from datetime import datetime, timezone
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError

from trustgate.dependencies import get_credibility_config
from trustgate.middleware.validation import error_response
from trustgate.models.credibility import CredibilityConfig, ScoreRequest, ScoreResponse
from trustgate.services.credibility_service import (
    UnknownTierError,
    compute_credibility_score,
    credibility_breakdown,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/credibility", tags=["credibility"])


@router.post("/score")
async def score(
    request: Request,
    default_config: Annotated[CredibilityConfig, Depends(get_credibility_config)],
):
    try:
        body = await request.json()
    except Exception:
        return error_response(400, "INVALID_BODY", "Invalid request body")

    try:
        req = ScoreRequest.model_validate(body)
    except ValidationError as e:
        errors = e.errors()
        if any(err["loc"] and err["loc"][0] == "config" for err in errors):
            return error_response(400, "INVALID_CONFIG", errors[0]["msg"])
        return error_response(400, "INVALID_BODY", "Invalid request body")

    config = req.config or default_config
    now = datetime.now(timezone.utc)
    try:
        resp = ScoreResponse(
            score=compute_credibility_score(req.factors, config, now),
            breakdown=credibility_breakdown(req.factors, config, now),
        )
    except UnknownTierError as e:
        return error_response(400, "INVALID_CONFIG", str(e))
    return resp.model_dump(by_alias=True)
