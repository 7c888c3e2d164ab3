import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from trustgate.dependencies import get_behavior_store
from trustgate.middleware.validation import error_response
from trustgate.models.game import LeaderboardPeriod
from trustgate.services.behavior_store import BehaviorStore
from trustgate.services.report_service import generate_report

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/moderation", tags=["moderation"])


@router.get("/report")
async def report(
    store: Annotated[BehaviorStore, Depends(get_behavior_store)],
    timeframe: str = "daily",
):
    try:
        period = LeaderboardPeriod(timeframe)
    except ValueError:
        return error_response(
            400, "INVALID_FIELD", "timeframe must be one of: daily, weekly, monthly, all-time"
        )

    try:
        result = await generate_report(store, period)
    except Exception:
        logger.exception("Failed to generate anti-gaming report")
        return error_response(500, "INTERNAL_ERROR", "Failed to generate report")

    return result.model_dump(by_alias=True, mode="json")
