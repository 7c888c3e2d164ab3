from fastapi import Request

from trustgate.config import Settings
from trustgate.models.credibility import CredibilityConfig
from trustgate.services.antigaming_service import AntiGamingValidator
from trustgate.services.behavior_store import BehaviorStore
from trustgate.services.explore_service import ExploreComposer
from trustgate.services.leaderboard_service import LeaderboardVerifier


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_credibility_config(request: Request) -> CredibilityConfig:
    return request.app.state.credibility_config


def get_validator(request: Request) -> AntiGamingValidator:
    return request.app.state.validator


def get_behavior_store(request: Request) -> BehaviorStore:
    return request.app.state.behavior_store


def get_leaderboard_verifier(request: Request) -> LeaderboardVerifier:
    return request.app.state.leaderboard_verifier


def get_composer(request: Request) -> ExploreComposer | None:
    return getattr(request.app.state, "composer", None)
