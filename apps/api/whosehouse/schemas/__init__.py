"""Pydantic schemas for API request/response models."""

from whosehouse.schemas.auth import MeResponse, TokenPayload, UserSession
from whosehouse.schemas.case import CaseCreate, CaseRead, CaseUpdate, PlacementRequestRead
from whosehouse.schemas.household import HouseholdRead, HouseholdSearchResult
from whosehouse.schemas.message import MessageCreate, MessageRead
from whosehouse.schemas.profile import ProfileRead, ProfileSummary

__all__ = [
    "CaseCreate",
    "CaseRead",
    "CaseUpdate",
    "HouseholdRead",
    "HouseholdSearchResult",
    "MeResponse",
    "MessageCreate",
    "MessageRead",
    "PlacementRequestRead",
    "ProfileRead",
    "ProfileSummary",
    "TokenPayload",
    "UserSession",
]
