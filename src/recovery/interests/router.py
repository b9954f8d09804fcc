"""Interest catalog endpoint: /api/interests."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from recovery.dependencies import get_storage
from recovery.interests.schemas import InterestListResponse, InterestResponse
from recovery.storage.base import Storage

router = APIRouter(prefix="/api/interests", tags=["Interests"])


@router.get("", response_model=InterestListResponse)
async def list_interests_endpoint(storage: Storage = Depends(get_storage)):
    """Catalog of interests to choose from for profiles and partner search. Public."""
    interests = await storage.list_interests()
    return InterestListResponse(interests=[InterestResponse.from_record(i) for i in interests])
