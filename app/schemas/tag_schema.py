# app/schemas/tag_schema.py
"""
Tag schemas returned by the tag upsert-and-link workflow.
"""

import uuid
from typing import List

from pydantic import BaseModel, Field


class TagResult(BaseModel):
    id: int
    name: str
    is_new: bool = False


class TagLinkResult(BaseModel):
    """Result of processing a book's tag set."""

    book_id: uuid.UUID
    tag_names: List[str] = Field(
        default_factory=list, description="Normalized tag names, in input order"
    )
    created_tags: List[TagResult] = Field(
        default_factory=list, description="Tags that did not exist before"
    )
    linked_tag_ids: List[int] = Field(
        default_factory=list, description="Tag ids newly linked to the book"
    )
