from __future__ import annotations
from typing import Any, Awaitable, Callable, List, Optional
import asyncio
import json
import logging
import re
import time

import anthropic

from manuscript_doctor.analysis import merge_health_batches, parse_result
from manuscript_doctor.config import DoctorConfig
from manuscript_doctor.editops import Suggestion
from manuscript_doctor.ir import Document, DocumentSet
from manuscript_doctor.llm.prompts import (
    SYSTEM_PROMPT,
    GLOBAL_EDIT_PROMPT,
    REWRITE_PROMPT_TEMPLATE,
    SYNOPSIS_PROMPT,
    HEALTH_PROMPT,
    HEALTH_BATCH_PROMPT,
    CONTINUITY_PROMPT,
    THEMES_PROMPT,
    COHESION_PROMPT,
    build_project_context,
)

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


def extract_json(text: Optional[str]) -> Any:
    """
    Best-effort JSON extraction from model output.

    Tries the whole text, then a fenced code block, then the brace or
    bracket span that opens first. Returns None when nothing parses.
    """
    if not text:
        return None
    trimmed = text.strip()

    candidates: List[str] = []
    if (trimmed.startswith("{") and trimmed.endswith("}")) or (trimmed.startswith("[") and trimmed.endswith("]")):
        candidates.append(trimmed)
    m = _FENCE_RE.search(trimmed)
    if m:
        candidates.append(m.group(1).strip())
    spans = []
    for open_ch, close_ch in (("{", "}"), ("[", "]")):
        start, end = trimmed.find(open_ch), trimmed.rfind(close_ch)
        if start >= 0 and end > start:
            spans.append((start, trimmed[start:end + 1]))
    # outermost value first
    candidates.extend(span for _, span in sorted(spans))

    for candidate in candidates:
        try:
            return json.loads(candidate)
        except ValueError:
            continue
    return None


def _is_rate_limit(error: Exception) -> bool:
    if isinstance(error, anthropic.RateLimitError):
        return True
    status = getattr(error, "status_code", None)
    if status is not None:
        # 529: overloaded
        return status in (429, 529)
    error_str = str(error).lower()
    return (
        "rate limit" in error_str or
        "rate_limit" in error_str or
        "429" in error_str or
        "too many requests" in error_str or
        "overloaded" in error_str
    )


def _batches(documents: List[Document], size: int) -> List[List[Document]]:
    size = max(1, size)
    return [documents[i:i + size] for i in range(0, len(documents), size)]


class ClaudeClient:
    """
    Claude-backed implementations of the three external collaborators:
    streaming global edits, single-chapter rewrites and analysis scans.
    """

    def __init__(self, config: DoctorConfig, sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.config = config
        self._sleep = sleep
        self._client: Optional["anthropic.AsyncAnthropic"] = None

    @property
    def client(self) -> "anthropic.AsyncAnthropic":
        """Lazy initialization of the async Anthropic client."""
        if self._client is None:
            if not self.config.api_key:
                raise ValueError("An Anthropic API key is required (set ANTHROPIC_API_KEY)")
            self._client = anthropic.AsyncAnthropic(api_key=self.config.api_key)
        return self._client

    async def complete(self, prompt: str, system: str = SYSTEM_PROMPT) -> str:
        """Single completion with exponential backoff on rate limits."""
        last_error: Optional[Exception] = None
        for attempt in range(self.config.max_retries + 1):
            try:
                await self._sleep(self.config.min_request_interval)
                message = await self.client.messages.create(
                    model=self.config.model,
                    max_tokens=self.config.max_tokens,
                    temperature=self.config.temperature,
                    system=system,
                    messages=[{"role": "user", "content": prompt}],
                )
                result = ""
                for block in message.content:
                    if hasattr(block, "text"):
                        result += block.text
                return result.strip()

            except Exception as e:
                last_error = e
                if _is_rate_limit(e) and attempt < self.config.max_retries:
                    # 2s, 4s, 8s
                    backoff = 2 ** (attempt + 1)
                    logger.warning(f"Rate limit hit, retry {attempt+1}/{self.config.max_retries} in {backoff}s")
                    await self._sleep(backoff)
                    continue
                break

        logger.error(f"Claude call failed: {type(last_error).__name__}: {last_error}")
        raise last_error

    # ------------------------------------------------------------------
    # Rewrites
    # ------------------------------------------------------------------
    async def rewrite_document(self, text: str, instructions: str, project_context: str, approx_word_count: int) -> str:
        prompt = REWRITE_PROMPT_TEMPLATE.format(
            instructions=instructions,
            context=project_context,
            word_count=approx_word_count,
            text=text[:self.config.rewrite_char_limit],
        )
        start = time.time()
        rewritten = await self.complete(prompt)
        logger.info(f"Rewrite returned {len(rewritten.split())} words in {(time.time() - start):.1f}s")
        return rewritten or text

    # ------------------------------------------------------------------
    # Global edits
    # ------------------------------------------------------------------
    async def stream_global_edits(
        self,
        documents: DocumentSet,
        on_progress: Callable[[str], None],
        on_suggestion: Callable[[Suggestion], None],
    ) -> None:
        limit = self.config.global_edit_char_limit
        for doc in documents:
            on_progress(f"Analyzing {doc.title}...")
            raw = await self.complete(f"{GLOBAL_EDIT_PROMPT}\n\nCHAPTER:\n{doc.text[:limit]}")
            payload = extract_json(raw)
            if isinstance(payload, dict) and payload.get("originalText"):
                suggestion = Suggestion.from_dict(payload)
                suggestion.document_id = doc.id
                suggestion.document_title = doc.title
                suggestion.id = ""
                on_suggestion(suggestion)
            else:
                logger.info(f"No usable suggestion for {doc.title}")
            await self._sleep(self.config.suggestion_delay)

    # ------------------------------------------------------------------
    # Scans
    # ------------------------------------------------------------------
    async def _ask_json(self, prompt: str, content_label: str, content: str) -> Any:
        raw = await self.complete(f"{prompt}\n\n{content_label}:\n{content}")
        payload = extract_json(raw)
        if payload is None:
            raise ValueError("Analysis returned no parseable JSON")
        return payload

    def _context(self, documents: DocumentSet) -> str:
        return build_project_context(documents, max_chars_per_chapter=self.config.context_chars_per_chapter)

    async def _health(self, documents: DocumentSet) -> Any:
        docs = list(documents)
        size = self.config.health_batch_size
        if len(docs) <= size:
            return parse_result("health", await self._ask_json(HEALTH_PROMPT, "PROJECT", self._context(documents)))

        batches = _batches(docs, size)
        logger.info(f"Health scan over {len(docs)} chapters in {len(batches)} batches")
        results = []
        for batch in batches:
            content = json.dumps([
                {"title": d.title, "content": d.text[:self.config.batch_char_limit]} for d in batch
            ])
            payload = await self._ask_json(HEALTH_BATCH_PROMPT, "CHAPTERS", content)
            results.append(payload if isinstance(payload, dict) else {})
        return merge_health_batches(results)

    async def _continuity(self, documents: DocumentSet) -> Any:
        issues = []
        for batch in _batches(list(documents), self.config.continuity_batch_size):
            content = "\n\n".join(d.text[:self.config.continuity_char_limit] for d in batch)
            issues.extend(parse_result("continuity", await self._ask_json(CONTINUITY_PROMPT, "CONTENT", content)))
        return issues

    async def run_scan(self, kind: str, documents: DocumentSet) -> Any:
        if kind == "health":
            return await self._health(documents)
        if kind == "continuity":
            return await self._continuity(documents)
        prompts = {
            "synopsis": (SYNOPSIS_PROMPT, "MANUSCRIPT"),
            "themes": (THEMES_PROMPT, "MANUSCRIPT"),
            "cohesion": (COHESION_PROMPT, "SKELETON"),
        }
        if kind not in prompts:
            raise ValueError(f"Unknown scan kind: {kind}")
        prompt, label = prompts[kind]
        return parse_result(kind, await self._ask_json(prompt, label, self._context(documents)))
