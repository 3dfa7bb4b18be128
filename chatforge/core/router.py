"""Content router: classify a chat request and build its call plan.

Routing order:

1. Creator questions get a fixed branding answer, no provider call.
2. Image and document attachments: combined analysis prompt.
3. Image attachments only: vision prompt.
4. Document attachments only: document-understanding prompt, reusing a
   cached per-document digest keyed by (storage path, file name).
5. Plain text with attached sources: synthesis prompt citing ``[n]``.
6. Plain text: direct-knowledge prompt.

The candidate chain puts an explicitly requested model first and follows
it with the fallback ladder; "best"/"auto" uses the ladder alone. A
candidate whose family has no credentials is skipped by the executor, so
the chain always continues past it.

Examples:
    >>> router = ContentRouter(storage=LocalObjectStorage("./output"))
    >>> routed = await router.route(GenerationRequest(prompt="hi", owner_email="a@b.co"))
    >>> routed.strategy, [str(c) for c in routed.chain][:2]
    (<RouteStrategy.DIRECT: 'direct'>, ['google:gemini-2.5-flash', 'openrouter:openai/gpt-oss-20b:free'])

Tests:
    - tests/unit/test_router.py
"""

from __future__ import annotations

import asyncio
import base64
import logging
from dataclasses import dataclass, field
from enum import Enum

from cachetools import TTLCache

from chatforge.config import (
    AUTO_SELECTIONS,
    BEST_LADDER,
    GEMINI_TEXT_MODEL,
    VISION_MODEL,
    ProviderFamily,
    family_for_model,
)
from chatforge.core.errors import InvalidRequestError, StorageError
from chatforge.core.failover import ProviderCandidate
from chatforge.core.identity import IdentityAnswer, classify_identity
from chatforge.core.providers.base import CallKind, ContentPart, ProviderRequest
from chatforge.core.text import heuristic_summary
from chatforge.prompts import analysis, synthesis
from chatforge.schemas import Attachment, GenerationRequest
from chatforge.storage.backends.base import ObjectStorage

logger = logging.getLogger(__name__)


class RouteStrategy(str, Enum):
    """How a request is answered."""

    IDENTITY = "identity"
    COMBINED = "combined"
    VISION = "vision"
    DOCUMENT = "document"
    SYNTHESIS = "synthesis"
    DIRECT = "direct"


@dataclass(frozen=True)
class DocumentDigest:
    """Extracted text and heuristic summary of one document."""

    content: str
    summary: str


@dataclass
class RoutedRequest:
    """Call plan for one chat request.

    Attributes:
        strategy: Which routing branch applied
        chain: Ordered provider candidates (empty for identity answers)
        prompt: Assembled prompt text
        parts: Image parts sent along with the prompt
        identity_answer: Fixed answer when the strategy is IDENTITY
    """

    strategy: RouteStrategy
    chain: list[ProviderCandidate] = field(default_factory=list)
    prompt: str = ""
    parts: list[ContentPart] = field(default_factory=list)
    identity_answer: str | None = None

    @property
    def is_identity(self) -> bool:
        return self.strategy == RouteStrategy.IDENTITY

    def to_provider_request(self) -> ProviderRequest:
        return ProviderRequest(prompt=self.prompt, parts=self.parts)


class SummaryCache:
    """Bounded TTL cache of document digests keyed by (storage path, file name)."""

    def __init__(self, maxsize: int = 256, ttl: int = 3600) -> None:
        self._cache: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl)

    def __len__(self) -> int:
        return len(self._cache)

    def get(self, key: tuple[str, str]) -> DocumentDigest | None:
        return self._cache.get(key)

    def put(self, key: tuple[str, str], digest: DocumentDigest) -> None:
        self._cache[key] = digest


def _dedupe(chain: list[ProviderCandidate]) -> list[ProviderCandidate]:
    seen: set[tuple[ProviderFamily, str, CallKind]] = set()
    result = []
    for candidate in chain:
        key = (candidate.family, candidate.model, candidate.kind)
        if key not in seen:
            seen.add(key)
            result.append(candidate)
    return result


def is_auto(model: str | None) -> bool:
    """Whether a model selection means "use the preference ladder"."""
    return (model or "").strip().lower() in AUTO_SELECTIONS


def text_chain(model: str | None) -> list[ProviderCandidate]:
    """Candidate chain for text completion.

    A requested model comes first; the "best" ladder follows as fallback.
    A4F text models get Gemini as their first fallback.
    """
    ladder = [ProviderCandidate(family, m, CallKind.COMPLETION) for family, m in BEST_LADDER]
    if is_auto(model):
        return ladder

    requested = model.strip()
    chain = [ProviderCandidate(family_for_model(requested), requested, CallKind.COMPLETION)]
    if chain[0].family == ProviderFamily.A4F:
        chain.append(ProviderCandidate(ProviderFamily.GOOGLE, GEMINI_TEXT_MODEL, CallKind.COMPLETION))
    return _dedupe(chain + ladder)


def vision_chain(model: str | None) -> list[ProviderCandidate]:
    """Candidate chain for image understanding; Gemini vision is the fallback."""
    chain = []
    if not is_auto(model):
        requested = model.strip()
        chain.append(ProviderCandidate(family_for_model(requested), requested, CallKind.VISION))
    chain.append(ProviderCandidate(ProviderFamily.GOOGLE, VISION_MODEL, CallKind.VISION))
    return _dedupe(chain)


def image_chain(model: str, default_model: str) -> list[ProviderCandidate]:
    """Candidate chain for image generation: the requested model, then the default."""
    chain = [ProviderCandidate(family_for_model(model), model, CallKind.IMAGE)]
    chain.append(ProviderCandidate(family_for_model(default_model), default_model, CallKind.IMAGE))
    return _dedupe(chain)


class ContentRouter:
    """Builds prompts, content parts and candidate chains for chat requests.

    Args:
        storage: Object storage holding uploaded attachments.
        summary_cache: Cache of document digests.
        brand: Product name used in identity answers.
        storage_timeout: Seconds allowed for each attachment download.
    """

    def __init__(
        self,
        storage: ObjectStorage | None = None,
        summary_cache: SummaryCache | None = None,
        brand: str = "ChatForge",
        storage_timeout: float = 30.0,
    ) -> None:
        self.storage = storage
        self.summary_cache = summary_cache if summary_cache is not None else SummaryCache()
        self.brand = brand
        self.storage_timeout = storage_timeout

    async def _download(self, path: str) -> bytes:
        if self.storage is None:
            raise StorageError(f"No object storage configured to read {path}")
        try:
            return await asyncio.wait_for(self.storage.download(path), timeout=self.storage_timeout)
        except asyncio.TimeoutError as e:
            raise StorageError(f"Download of {path} timed out") from e

    async def _image_part(self, attachment: Attachment) -> ContentPart:
        if attachment.data:
            return ContentPart.from_image(attachment.data, attachment.mime_type)
        raw = await self._download(attachment.storage_path or "")
        return ContentPart.from_image(base64.b64encode(raw).decode("ascii"), attachment.mime_type)

    async def _digest(self, attachment: Attachment) -> DocumentDigest:
        """Document text and summary, from cache when previously processed."""
        key = attachment.cache_key
        cached = self.summary_cache.get(key)
        if cached is not None:
            logger.debug(f"Summary cache hit for {key}")
            return cached

        if attachment.content is not None:
            content = attachment.content
        elif attachment.data:
            content = base64.b64decode(attachment.data).decode("utf-8", errors="replace")
        else:
            content = (await self._download(attachment.storage_path or "")).decode("utf-8", errors="replace")

        summary, _ = heuristic_summary(content)
        digest = DocumentDigest(content=content, summary=summary)
        self.summary_cache.put(key, digest)
        return digest

    async def _documents_block(self, documents: list[Attachment]) -> str:
        blocks = []
        for doc in documents:
            digest = await self._digest(doc)
            blocks.append(
                analysis.format_document(doc.file_name, doc.mime_type, digest.content, digest.summary)
            )
        return "\n\n".join(blocks)

    async def route(self, request: GenerationRequest) -> RoutedRequest:
        """Classify a chat request and assemble its call plan.

        Raises:
            InvalidRequestError: If there is neither a prompt nor an attachment.
            StorageError: If an attachment cannot be read.
        """
        prompt = request.prompt.strip()
        if not prompt and not request.attachments:
            raise InvalidRequestError("Either prompt or attachments must be provided")

        identity = classify_identity(prompt, brand=self.brand)
        if isinstance(identity, IdentityAnswer):
            logger.info(f"Creator question detected ({identity.language}), answering directly")
            return RoutedRequest(
                strategy=RouteStrategy.IDENTITY,
                identity_answer=identity.text,
            )

        history = analysis.format_history([t.model_dump() for t in request.history])
        images = [a for a in request.attachments if a.is_image]
        documents = [a for a in request.attachments if not a.is_image]

        if images:
            parts = [await self._image_part(a) for a in images]
            if documents:
                strategy = RouteStrategy.COMBINED
                text = analysis.get_combined_prompt(
                    prompt or "Please analyze these files",
                    await self._documents_block(documents),
                    history,
                )
            else:
                strategy = RouteStrategy.VISION
                text = analysis.get_vision_prompt(prompt, history)
            return RoutedRequest(
                strategy=strategy,
                chain=vision_chain(request.model),
                prompt=text,
                parts=parts,
            )

        if documents:
            text = analysis.get_document_prompt(prompt, await self._documents_block(documents), history)
            return RoutedRequest(
                strategy=RouteStrategy.DOCUMENT,
                chain=text_chain(request.model),
                prompt=text,
            )

        if request.sources:
            text = synthesis.get_search_prompt(
                prompt,
                [s.model_dump() for s in request.sources],
                history,
            )
            return RoutedRequest(
                strategy=RouteStrategy.SYNTHESIS,
                chain=text_chain(request.model),
                prompt=text,
            )

        return RoutedRequest(
            strategy=RouteStrategy.DIRECT,
            chain=text_chain(request.model),
            prompt=analysis.get_direct_prompt(prompt, history),
        )
