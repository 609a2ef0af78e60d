from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import Dict, Iterator, List, Optional, Tuple
import time

from manuscript_doctor.analysis import AnalysisRecord


def count_words(text: str) -> int:
    return len(text.split())


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class Document:
    id: str
    title: str
    text: str
    word_count: int = 0
    last_modified_at: int = 0    # epoch millis
    summary: Optional[str] = None

    @classmethod
    def create(cls, id: str, title: str, text: str, summary: Optional[str] = None) -> "Document":
        return cls(id=id, title=title, text=text, word_count=count_words(text),
                   last_modified_at=_now_ms(), summary=summary)

    def with_text(self, text: str) -> "Document":
        """Return a copy carrying new text, a fresh word count and timestamp."""
        return replace(self, text=text, word_count=count_words(text), last_modified_at=_now_ms())

    def to_dict(self) -> Dict[str, object]:
        payload: Dict[str, object] = {
            "id": self.id,
            "title": self.title,
            "text": self.text,
            "word_count": self.word_count,
            "last_modified_at": self.last_modified_at,
        }
        if self.summary:
            payload["summary"] = self.summary
        return payload

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "Document":
        text = str(data.get("text", ""))
        return cls(
            id=str(data["id"]),
            title=str(data.get("title", "")),
            text=text,
            # stored counts are never trusted
            word_count=count_words(text),
            last_modified_at=int(data.get("last_modified_at") or 0),
            summary=data.get("summary") or None,
        )


@dataclass(frozen=True)
class DocumentSet:
    """Ordered, id-unique collection of chapters."""
    documents: Tuple[Document, ...] = ()

    def __post_init__(self):
        docs = tuple(self.documents)
        object.__setattr__(self, "documents", docs)
        seen = set()
        for d in docs:
            if d.id in seen:
                raise ValueError(f"Duplicate document id: {d.id}")
            seen.add(d.id)

    def __iter__(self) -> Iterator[Document]:
        return iter(self.documents)

    def __len__(self) -> int:
        return len(self.documents)

    def ids(self) -> List[str]:
        return [d.id for d in self.documents]

    def get(self, document_id: str) -> Optional[Document]:
        for d in self.documents:
            if d.id == document_id:
                return d
        return None

    def index_of(self, document_id: str) -> int:
        for i, d in enumerate(self.documents):
            if d.id == document_id:
                return i
        return -1

    def replace(self, document: Document) -> "DocumentSet":
        idx = self.index_of(document.id)
        if idx < 0:
            raise KeyError(document.id)
        docs = list(self.documents)
        docs[idx] = document
        return DocumentSet(tuple(docs))

    @property
    def total_words(self) -> int:
        return sum(d.word_count for d in self.documents)


@dataclass(frozen=True)
class Project:
    title: str = ""
    genre: str = ""
    story_bible: str = ""
    documents: DocumentSet = field(default_factory=DocumentSet)
    analysis: AnalysisRecord = field(default_factory=AnalysisRecord)

    def with_documents(self, documents: DocumentSet) -> "Project":
        return replace(self, documents=documents)

    def with_analysis(self, analysis: AnalysisRecord) -> "Project":
        return replace(self, analysis=analysis)

    def to_dict(self) -> Dict[str, object]:
        return {
            "title": self.title,
            "genre": self.genre,
            "story_bible": self.story_bible,
            "chapters": [d.to_dict() for d in self.documents],
            "analysis": self.analysis.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "Project":
        return cls(
            title=str(data.get("title", "")),
            genre=str(data.get("genre", "")),
            story_bible=str(data.get("story_bible", "")),
            documents=DocumentSet(tuple(Document.from_dict(c) for c in data.get("chapters", []) or [])),
            analysis=AnalysisRecord.from_dict(data.get("analysis") or {}),
        )
