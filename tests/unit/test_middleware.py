import asyncio

import pytest
from pydantic import ValidationError

from trustgate.config import Settings
from trustgate.middleware.logging import fingerprint, redact_path
from trustgate.middleware.ratelimit import RateLimiter, configure_rate_limiters
from trustgate.middleware.validation import (
    parse_csv,
    parse_optional_bool,
    parse_range,
    validate_user_id,
)
from trustgate.services.action_counter import InMemoryActionCounter


class TestRedaction:
    def test_user_id_in_path(self):
        assert redact_path("/api/actions/behavior/user_42") == "/api/actions/behavior/:userId"

    def test_other_paths_untouched(self):
        assert redact_path("/api/explore") == "/api/explore"

    def test_fingerprint_is_stable_and_short(self):
        assert fingerprint("10.0.0.1") == fingerprint("10.0.0.1")
        assert len(fingerprint("10.0.0.1")) == 12
        assert fingerprint("10.0.0.1") != fingerprint("10.0.0.2")


class TestValidation:
    @pytest.mark.parametrize(
        "raw, expected",
        [("user_1", "user_1"), ("  a-b  ", "a-b")],
    )
    def test_valid_user_ids(self, raw, expected):
        assert validate_user_id(raw) == (expected, None)

    @pytest.mark.parametrize("raw", ["", "   ", "a b", "x" * 129, "name@host"])
    def test_invalid_user_ids(self, raw):
        _, err = validate_user_id(raw)
        assert err

    def test_parse_csv(self):
        assert parse_csv("a, b,,c") == ["a", "b", "c"]
        assert parse_csv("") is None
        assert len(parse_csv(",".join(str(i) for i in range(50)))) == 20

    def test_parse_range(self):
        assert parse_range("10,20", "priceRange") == ((10.0, 20.0), None)
        assert parse_range(None, "priceRange") == (None, None)
        assert parse_range("20,10", "priceRange")[1] == "priceRange minimum exceeds maximum"
        assert parse_range("a,b", "bpmRange")[1] == "bpmRange must be numeric"
        assert parse_range("1", "bpmRange")[1] == "bpmRange must be 'min,max'"

    def test_parse_optional_bool(self):
        assert parse_optional_bool("true") is True
        assert parse_optional_bool("false") is False
        assert parse_optional_bool("yes") is None


class TestRateLimiter:
    def test_window_resets_on_boundary(self):
        now = [120.0]
        limiter = RateLimiter(
            "t", 2, 60, key_fn=lambda r: "k", counter=InMemoryActionCounter(clock=lambda: now[0]),
            clock=lambda: now[0],
        )

        async def run():
            decisions = [await limiter.check(None) for _ in range(3)]
            now[0] = 180.0
            decisions.append(await limiter.check(None))
            return decisions

        first, second, third, fresh = asyncio.run(run())
        assert (first.allowed, first.remaining) == (True, 1)
        assert (second.allowed, second.remaining) == (True, 0)
        assert not third.allowed
        assert third.reset == 180
        assert third.retry_after == 60
        assert fresh.allowed

    def test_routes_share_named_budgets(self):
        routes = configure_rate_limiters()
        by_path = {(m, r.pattern): limiter for m, r, limiter in routes}
        scoring = [l for (m, p), l in by_path.items() if "score" in p or "verify" in p or "balance" in p]
        assert len({id(l) for l in scoring}) == 1

    def test_route_patterns_match_path_params(self):
        routes = configure_rate_limiters()
        matching = [
            limiter.name
            for method, regex, limiter in routes
            if method == "DELETE" and regex.match("/api/actions/behavior/user_1")
        ]
        assert matching == ["admin"]


class TestSettings:
    def test_database_url_assembled(self):
        s = Settings(database_url="", postgres_user="u", postgres_password="p", postgres_host="db")
        assert s.database_url.startswith("postgres://u:p@db:5432/")

    def test_redis_url_without_password(self):
        s = Settings(redis_url="", redis_password="", redis_host="cache", redis_port=6380)
        assert s.redis_url == "redis://cache:6380"

    def test_unknown_log_level_rejected(self):
        with pytest.raises(ValidationError):
            Settings(log_level="loud")

    def test_pool_bounds_checked(self):
        with pytest.raises(ValidationError):
            Settings(db_pool_min_size=5, db_pool_max_size=2)

    def test_cors_rules(self):
        s = Settings(cors_origins="https://app.example.com, http://localhost:*")
        exact, regex = s.cors_rules()
        assert exact == ["https://app.example.com"]
        assert regex == r"http://localhost:.*"

    def test_cors_wildcard(self):
        assert Settings(cors_origins="*").cors_rules() == (["*"], None)
