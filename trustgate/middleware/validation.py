"""Input validation utilities for request bodies and query strings."""

import re

from fastapi.responses import JSONResponse

MAX_USER_ID_LEN = 128
MAX_CSV_ITEMS = 20

USER_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")


def error_response(status_code: int, code: str, message: str) -> JSONResponse:
    """Return a standard API error response."""
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message}},
    )


def validate_user_id(user_id: str) -> tuple[str, str | None]:
    """Validate a user ID. Returns (cleaned_id, error_message)."""
    user_id = user_id.strip() if user_id else ""
    if not user_id:
        return "", "userId is required"
    if len(user_id) > MAX_USER_ID_LEN:
        return "", f"userId must be at most {MAX_USER_ID_LEN} characters"
    if not USER_ID_RE.match(user_id):
        return "", "userId contains invalid characters"
    return user_id, None


def parse_csv(value: str | None) -> list[str] | None:
    """'a, b,,c' -> ['a', 'b', 'c']; empty input -> None."""
    if not value:
        return None
    items = [v.strip() for v in value.split(",") if v.strip()]
    return items[:MAX_CSV_ITEMS] or None


def parse_range(value: str | None, name: str) -> tuple[tuple[float, float] | None, str | None]:
    """Parse 'min,max'. Returns (range, error_message)."""
    if not value:
        return None, None
    parts = [p.strip() for p in value.split(",")]
    if len(parts) != 2:
        return None, f"{name} must be 'min,max'"
    try:
        low, high = float(parts[0]), float(parts[1])
    except ValueError:
        return None, f"{name} must be numeric"
    if low > high:
        return None, f"{name} minimum exceeds maximum"
    return (low, high), None


def parse_optional_bool(value: str | None) -> bool | None:
    """'true' -> True, 'false' -> False, anything else -> None."""
    if value == "true":
        return True
    if value == "false":
        return False
    return None
