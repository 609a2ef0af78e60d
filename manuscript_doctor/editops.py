from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import Dict, Any, Literal
import uuid

SuggestionKind = Literal["consistency", "pacing", "prose", "other"]
SuggestionStatus = Literal["unapplied", "applied"]

KNOWN_KINDS = ("consistency", "pacing", "prose", "other")


def normalize_kind(kind: str) -> str:
    kind = (kind or "").strip().lower()
    return kind if kind in KNOWN_KINDS else "other"


def new_suggestion_id() -> str:
    return uuid.uuid4().hex[:12]


@dataclass
class Suggestion:
    document_id: str
    original_text: str           # content anchor, not an offset
    suggested_text: str
    rationale: str = ""
    kind: str = "other"          # consistency|pacing|prose|other
    id: str = ""
    document_title: str = ""
    status: str = "unapplied"    # unapplied|applied

    @property
    def is_applied(self) -> bool:
        return self.status == "applied"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Suggestion":
        """Accepts both persisted snake_case and model-output camelCase keys."""
        return cls(
            document_id=str(data.get("document_id") or data.get("chapterId") or ""),
            original_text=str(data.get("original_text") or data.get("originalText") or ""),
            suggested_text=str(data.get("suggested_text") or data.get("suggestedText") or ""),
            rationale=str(data.get("rationale") or ""),
            kind=normalize_kind(str(data.get("kind") or data.get("type") or "")),
            id=str(data.get("id") or ""),
            document_title=str(data.get("document_title") or data.get("chapterTitle") or ""),
            status="applied" if data.get("status") == "applied" else "unapplied",
        )
