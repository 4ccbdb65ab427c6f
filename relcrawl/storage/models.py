"""Pydantic models for records collected while crawling."""
from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field

from relcrawl.quality.similarity import relation_key


class Profile(BaseModel):
    """A user profile returned by the remote service."""

    user_id: int = Field(gt=0)
    screen_name: str = ""
    name: str = ""
    followers: List[int] = Field(default_factory=list)
    following: List[int] = Field(default_factory=list)

    @property
    def display_name(self) -> str:
        return self.name or self.screen_name


class Relation(BaseModel):
    """A directed edge between two users found while paging a subset."""

    source_id: int = Field(gt=0)
    target_id: int = Field(gt=0)
    kind: str = Field(pattern=r"^(followers|following)$")

    @property
    def key(self) -> str:
        """Undirected key shared by both directions of the relation."""
        return relation_key(self.source_id, self.target_id)
