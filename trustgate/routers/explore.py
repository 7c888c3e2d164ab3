import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from trustgate.config import Settings
from trustgate.dependencies import get_composer, get_settings
from trustgate.middleware.validation import (
    error_response,
    parse_csv,
    parse_optional_bool,
    parse_range,
)
from trustgate.models.credibility import Tier
from trustgate.models.explore import ExploreFilters, ExploreOptions
from trustgate.routers.metrics import explore_bucket_failures
from trustgate.services.explore_service import ExploreComposer

logger = logging.getLogger(__name__)

router = APIRouter(tags=["explore"])

DEFAULT_LIMIT = 30
MAX_LIMIT = 100


def _unavailable(settings: Settings, detail: str | None = None) -> JSONResponse:
    error = {"code": "SERVICE_UNAVAILABLE", "message": "Explore service temporarily unavailable"}
    if detail and not settings.is_production:
        error["details"] = detail
    return JSONResponse(status_code=503, content={"error": error})


def _parse_filters(params) -> tuple[ExploreFilters | None, str | None]:
    tier = params.get("tier") or None
    if tier is not None and tier not in {t.value for t in Tier}:
        return None, "tier must be one of: standard, verified, signature"

    price_range, err = parse_range(params.get("priceRange"), "priceRange")
    if err:
        return None, err
    bpm_range, err = parse_range(params.get("bpmRange"), "bpmRange")
    if err:
        return None, err

    try:
        min_rating = float(params["minRating"]) if params.get("minRating") else None
        max_turnaround = int(params["maxTurnaround"]) if params.get("maxTurnaround") else None
    except ValueError:
        return None, "minRating and maxTurnaround must be numeric"

    return ExploreFilters(
        role=params.get("role") or None,
        tier=tier,
        location=params.get("location") or None,
        genres=parse_csv(params.get("genres")),
        min_rating=min_rating,
        only_available=params.get("onlyAvailable") == "true",
        has_offers=params.get("hasOffers") == "true",
        price_range=price_range,
        max_turnaround=max_turnaround,
        license_options=parse_csv(params.get("licenseOptions")),
        bpm_range=bpm_range,
        service=params.get("service") or None,
        stem_tier=params.get("stemTier") or None,
        category=params.get("category") or None,
        drone=parse_optional_bool(params.get("drone")),
        room_type=params.get("roomType") or None,
        engineer_included=parse_optional_bool(params.get("engineerIncluded")),
    ), None


@router.get("/api/explore")
async def explore(
    request: Request,
    settings: Annotated[Settings, Depends(get_settings)],
    composer: Annotated[ExploreComposer | None, Depends(get_composer)],
):
    params = request.query_params

    filters, err = _parse_filters(params)
    if err:
        return error_response(400, "INVALID_FIELD", err)

    try:
        limit = int(params.get("limit") or DEFAULT_LIMIT)
    except ValueError:
        return error_response(400, "INVALID_FIELD", "limit must be an integer")
    if not 1 <= limit <= MAX_LIMIT:
        return error_response(400, "INVALID_FIELD", f"limit must be between 1 and {MAX_LIMIT}")

    options = ExploreOptions(
        first_screen_mix=settings.explore_first_screen_mix,
        lane_nudges=settings.explore_lane_nudges,
        tier_precedence=settings.explore_tier_precedence,
        limit=limit,
    )

    if composer is None:
        return _unavailable(settings, "creator store not configured")

    try:
        result = await composer.compose(filters, options)
    except Exception as e:
        logger.exception("Explore composition failed")
        return _unavailable(settings, str(e))

    for bucket in result.metadata.failed_buckets:
        explore_bucket_failures.labels(bucket=bucket).inc()

    return result.model_dump(by_alias=True, mode="json")
