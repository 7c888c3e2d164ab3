import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request

from trustgate.dependencies import get_leaderboard_verifier
from trustgate.middleware.validation import error_response
from trustgate.models.game import VerifyLeaderboardRequest
from trustgate.services.leaderboard_service import LeaderboardVerifier

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/leaderboard", tags=["leaderboard"])


@router.post("/verify")
async def verify(
    request: Request,
    verifier: Annotated[LeaderboardVerifier, Depends(get_leaderboard_verifier)],
):
    try:
        body = await request.json()
    except Exception:
        return error_response(400, "INVALID_BODY", "Invalid request body")

    try:
        req = VerifyLeaderboardRequest.model_validate(body)
    except Exception:
        return error_response(400, "INVALID_BODY", "Invalid request body")

    try:
        entries = await verifier.verify(req.entries, req.period)
    except Exception:
        logger.exception("Failed to verify leaderboard")
        return error_response(500, "INTERNAL_ERROR", "Failed to verify leaderboard")

    return {
        "period": req.period.value,
        "entries": [e.model_dump(by_alias=True, mode="json") for e in entries],
    }
