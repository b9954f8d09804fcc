"""Response schemas for the interest catalog."""

from __future__ import annotations

from pydantic import BaseModel

from recovery.storage.records import Interest


class InterestResponse(BaseModel):
    id: int
    name: str
    category: str

    @classmethod
    def from_record(cls, interest: Interest) -> InterestResponse:
        return cls(id=interest.id, name=interest.name, category=interest.category)


class InterestListResponse(BaseModel):
    interests: list[InterestResponse]
