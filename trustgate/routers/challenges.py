from fastapi import APIRouter, Request

from trustgate.middleware.validation import error_response
from trustgate.models.game import BalanceChallengesRequest
from trustgate.services.challenge_balancer import balance_challenges, summarize_attempts

router = APIRouter(prefix="/api/challenges", tags=["challenges"])


@router.post("/balance")
async def balance(request: Request):
    try:
        body = await request.json()
    except Exception:
        return error_response(400, "INVALID_BODY", "Invalid request body")

    try:
        req = BalanceChallengesRequest.model_validate(body)
    except Exception:
        return error_response(400, "INVALID_BODY", "Invalid request body")

    stats = req.challenges + [summarize_attempts(log) for log in req.attempt_logs]
    return {
        "adjustments": [a.model_dump(by_alias=True) for a in balance_challenges(stats)],
    }
