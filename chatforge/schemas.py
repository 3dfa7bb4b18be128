"""Pydantic schemas shared by the router, pipeline, orchestrator and API.

Examples:
    >>> request = GenerationRequest(
    ...     kind=JobKind.IMAGE,
    ...     prompt="a lighthouse at dusk",
    ...     owner_email="ada@example.com",
    ...     width=1024,
    ...     height=768,
    ... )
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, EmailStr, Field, model_validator

from chatforge.models import JobKind


class Attachment(BaseModel):
    """A user-uploaded file referenced by a chat request.

    Either ``data`` (base64 bytes), ``content`` (already extracted text) or
    ``storage_path`` (object to download) must be set.
    """

    file_name: str = Field(..., min_length=1, max_length=255)
    mime_type: str = Field(default="application/octet-stream")
    storage_path: str | None = None
    data: str | None = Field(default=None, description="Base64-encoded bytes")
    content: str | None = Field(default=None, description="Extracted document text")

    @property
    def is_image(self) -> bool:
        return self.mime_type.startswith("image/")

    @property
    def cache_key(self) -> tuple[str, str]:
        """(storage path, file name) identity of the document."""
        return (self.storage_path or "", self.file_name)

    @model_validator(mode="after")
    def check_has_source(self) -> "Attachment":
        if not (self.data or self.content or self.storage_path):
            raise ValueError(f"Attachment {self.file_name} has no data, content or storage_path")
        return self


class Source(BaseModel):
    """A search result, optionally enriched with page content.

    Attributes:
        id: 1-based position in the deduplicated list
        url: Result URL
        title: Page title
        snippet: Search snippet
        display_link: Host shown by the search engine
        thumbnail: Thumbnail image URL
        metadata: author, publish_date and type when known
        content_excerpt: First characters of the fetched page text
        content_length: Length of the fetched page text
        summary: Heuristic summary (first sentences)
        key_points: Heuristic key points (following sentences)
    """

    id: int = 0
    url: str
    title: str = "Untitled"
    snippet: str = ""
    display_link: str = ""
    thumbnail: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)
    content_excerpt: str = ""
    content_length: int = 0
    summary: str = ""
    key_points: list[str] = Field(default_factory=list)


class ConversationTurn(BaseModel):
    """One prior exchange in a chat thread."""

    question: str | None = None
    answer: str | None = None


class GenerationRequest(BaseModel):
    """What a caller submits for a chat or image generation.

    Attributes:
        job_id: Optional caller-supplied id
        kind: chat or image
        prompt: User text
        owner_email: Requesting user
        model: Model selection ("best" uses the preference ladder)
        attachments: Files for chat analysis
        sources: Search or research results to cite
        history: Prior turns of the conversation
        width: Requested image width
        height: Requested image height
    """

    job_id: str | None = Field(default=None, max_length=64)
    kind: JobKind = JobKind.CHAT
    prompt: str = Field(default="", max_length=20000)
    owner_email: EmailStr
    model: str = "best"
    attachments: list[Attachment] = Field(default_factory=list)
    sources: list[Source] = Field(default_factory=list)
    history: list[ConversationTurn] = Field(default_factory=list)
    width: int | None = Field(default=None, ge=64, le=4096)
    height: int | None = Field(default=None, ge=64, le=4096)

    def to_payload(self) -> dict[str, Any]:
        """JSON-safe payload stored on the job record."""
        return self.model_dump(mode="json", exclude={"job_id", "owner_email", "kind"})
