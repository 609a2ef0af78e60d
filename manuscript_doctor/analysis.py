"""
Analysis Record

Typed results for each scan kind, the accumulator that folds them
together, and the issue extraction that feeds the rewrite sweep.
"""
from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Literal, Optional, Tuple

ScanKind = Literal["synopsis", "health", "continuity", "themes", "cohesion"]

SCAN_KINDS: Tuple[str, ...] = ("synopsis", "health", "continuity", "themes", "cohesion")


def _get(data: Dict[str, Any], snake: str, camel: str, default: Any = None) -> Any:
    """Read a key stored either in snake_case (persisted) or camelCase (model output)."""
    if snake in data:
        return data[snake]
    return data.get(camel, default)


def _list(value: Any) -> List[Any]:
    return list(value) if isinstance(value, (list, tuple)) else []


@dataclass
class Synopsis:
    logline: str = ""
    full_synopsis: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Synopsis":
        return cls(
            logline=str(data.get("logline", "") or ""),
            full_synopsis=str(_get(data, "full_synopsis", "fullSynopsis", "") or ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"logline": self.logline, "full_synopsis": self.full_synopsis}


@dataclass
class ProjectHealth:
    character_usage: List[Dict[str, Any]] = field(default_factory=list)   # {name, count}
    pov_balance: List[Dict[str, Any]] = field(default_factory=list)       # {name, percentage}
    pacing_map: List[Dict[str, Any]] = field(default_factory=list)        # {title, pacingScore, tensionScore}
    global_issues: List[str] = field(default_factory=list)
    conflict_progression: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProjectHealth":
        return cls(
            character_usage=_list(_get(data, "character_usage", "characterUsage")),
            pov_balance=_list(_get(data, "pov_balance", "povBalance")),
            pacing_map=_list(_get(data, "pacing_map", "pacingMap")),
            global_issues=[str(i) for i in _list(_get(data, "global_issues", "globalIssues"))],
            conflict_progression=_list(_get(data, "conflict_progression", "conflictProgression")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "character_usage": self.character_usage,
            "pov_balance": self.pov_balance,
            "pacing_map": self.pacing_map,
            "global_issues": self.global_issues,
            "conflict_progression": self.conflict_progression,
        }


@dataclass
class ContinuityIssue:
    type: str
    description: str
    location: str = ""
    severity: str = "medium"    # low|medium|high

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ContinuityIssue":
        return cls(
            type=str(data.get("type", "general")),
            description=str(data.get("description", "")),
            location=str(data.get("location", "")),
            severity=str(data.get("severity", "medium")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "description": self.description,
                "location": self.location, "severity": self.severity}


@dataclass
class PlotThread:
    thread: str
    setup: Dict[str, Any] = field(default_factory=dict)     # {chapterTitle, description}
    payoff: Dict[str, Any] = field(default_factory=dict)    # {chapterTitle, description, status}

    @property
    def payoff_status(self) -> str:
        return str(self.payoff.get("status", "unresolved"))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlotThread":
        return cls(
            thread=str(data.get("thread", "")),
            setup=dict(data.get("setup") or {}),
            payoff=dict(data.get("payoff") or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"thread": self.thread, "setup": self.setup, "payoff": self.payoff}


@dataclass
class ThemesReport:
    plot_threads: List[PlotThread] = field(default_factory=list)
    subplots: List[Dict[str, Any]] = field(default_factory=list)
    foreshadowing: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ThemesReport":
        return cls(
            plot_threads=[PlotThread.from_dict(t) for t in _list(_get(data, "plot_threads", "plotThreads"))
                          if isinstance(t, dict)],
            subplots=_list(data.get("subplots")),
            foreshadowing=_list(data.get("foreshadowing")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "plot_threads": [t.to_dict() for t in self.plot_threads],
            "subplots": self.subplots,
            "foreshadowing": self.foreshadowing,
        }


@dataclass
class NamingIssue:
    issue_type: str       # duplicate|similar|inconsistentSpelling
    details: str
    names_involved: List[str] = field(default_factory=list)
    location: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NamingIssue":
        return cls(
            issue_type=str(_get(data, "issue_type", "issueType", "similar")),
            details=str(data.get("details", "")),
            names_involved=[str(n) for n in _list(_get(data, "names_involved", "namesInvolved"))],
            location=str(data.get("location", "")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"issue_type": self.issue_type, "details": self.details,
                "names_involved": self.names_involved, "location": self.location}


@dataclass
class TimelineIssue:
    character_name: str
    issue: str
    details: str
    chapters_involved: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TimelineIssue":
        return cls(
            character_name=str(_get(data, "character_name", "characterName", "")),
            issue=str(data.get("issue", "")),
            details=str(data.get("details", "")),
            chapters_involved=[str(c) for c in _list(_get(data, "chapters_involved", "chaptersInvolved"))],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"character_name": self.character_name, "issue": self.issue,
                "details": self.details, "chapters_involved": self.chapters_involved}


@dataclass
class CohesionReport:
    naming_issues: List[NamingIssue] = field(default_factory=list)
    timeline_issues: List[TimelineIssue] = field(default_factory=list)
    flow_analysis: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CohesionReport":
        return cls(
            naming_issues=[NamingIssue.from_dict(i) for i in _list(_get(data, "naming_issues", "namingIssues"))
                           if isinstance(i, dict)],
            timeline_issues=[TimelineIssue.from_dict(i) for i in _list(_get(data, "timeline_issues", "timelineIssues"))
                             if isinstance(i, dict)],
            flow_analysis={str(k): str(v) for k, v in (_get(data, "flow_analysis", "flowAnalysis") or {}).items()},
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "naming_issues": [i.to_dict() for i in self.naming_issues],
            "timeline_issues": [i.to_dict() for i in self.timeline_issues],
            "flow_analysis": self.flow_analysis,
        }


@dataclass(frozen=True)
class AnalysisRecord:
    """Per-kind analysis results; each field is independently nullable."""
    synopsis: Optional[Synopsis] = None
    health: Optional[ProjectHealth] = None
    continuity: Optional[List[ContinuityIssue]] = None
    themes: Optional[ThemesReport] = None
    cohesion: Optional[CohesionReport] = None

    def merge(self, kind: str, result: Any) -> "AnalysisRecord":
        """Replace only the field for `kind`; every other kind passes through."""
        if kind not in SCAN_KINDS:
            raise ValueError(f"Unknown scan kind: {kind}")
        return replace(self, **{kind: result})

    def is_empty(self) -> bool:
        return all(getattr(self, k) is None for k in SCAN_KINDS)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        if self.synopsis is not None:
            payload["synopsis"] = self.synopsis.to_dict()
        if self.health is not None:
            payload["health"] = self.health.to_dict()
        if self.continuity is not None:
            payload["continuity"] = [i.to_dict() for i in self.continuity]
        if self.themes is not None:
            payload["themes"] = self.themes.to_dict()
        if self.cohesion is not None:
            payload["cohesion"] = self.cohesion.to_dict()
        return payload

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnalysisRecord":
        record = cls()
        for kind in SCAN_KINDS:
            if data.get(kind) is not None:
                record = record.merge(kind, parse_result(kind, data[kind]))
        return record


def parse_result(kind: str, payload: Any) -> Any:
    """Build the typed result for `kind` from decoded JSON."""
    if kind == "synopsis":
        return Synopsis.from_dict(payload or {})
    if kind == "health":
        return ProjectHealth.from_dict(payload or {})
    if kind == "continuity":
        if isinstance(payload, dict):
            payload = payload.get("issues", [])
        return [ContinuityIssue.from_dict(i) for i in _list(payload) if isinstance(i, dict)]
    if kind == "themes":
        return ThemesReport.from_dict(payload or {})
    if kind == "cohesion":
        return CohesionReport.from_dict(payload or {})
    raise ValueError(f"Unknown scan kind: {kind}")


def extract_issues(record: AnalysisRecord, kind: str) -> List[str]:
    """Flatten the active kind's findings into sweep issue descriptions."""
    if kind == "health" and record.health is not None:
        return list(record.health.global_issues)
    if kind == "continuity" and record.continuity is not None:
        return [i.description for i in record.continuity if i.description]
    if kind == "themes" and record.themes is not None:
        return [
            f"Address plot thread: {t.thread} (Payoff: {t.payoff_status})"
            for t in record.themes.plot_threads
            if t.payoff_status in ("unresolved", "partial")
        ]
    if kind == "cohesion" and record.cohesion is not None:
        return [i.details for i in record.cohesion.naming_issues] + \
               [i.details for i in record.cohesion.timeline_issues]
    return []


def has_issues_to_fix(record: AnalysisRecord, kind: str) -> bool:
    return len(extract_issues(record, kind)) > 0


def merge_health_batches(batches: List[Dict[str, Any]]) -> ProjectHealth:
    """
    Fold per-batch health findings into one report.

    Character mentions are summed, POV percentages averaged over the
    number of batches, pacing maps concatenated, global issues
    concatenated then de-duplicated in first-seen order.
    """
    merged = ProjectHealth()
    char_counts: Dict[str, float] = {}
    pov_totals: Dict[str, float] = {}
    for batch in batches:
        if not batch:
            continue
        for c in _list(_get(batch, "character_usage", "characterUsage")):
            if not isinstance(c, dict):
                continue
            name = str(c.get("name", ""))
            char_counts[name] = char_counts.get(name, 0) + (c.get("count") or 0)
        for p in _list(_get(batch, "pov_balance", "povBalance")):
            if not isinstance(p, dict):
                continue
            name = str(p.get("name", ""))
            pov_totals[name] = pov_totals.get(name, 0) + (p.get("percentage") or 0)
        merged.pacing_map.extend(_list(_get(batch, "pacing_map", "pacingMap")))
        merged.global_issues.extend(str(i) for i in _list(_get(batch, "global_issues", "globalIssues")))

    merged.character_usage = [{"name": n, "count": c} for n, c in char_counts.items()]
    n_batches = max(1, len(batches))
    merged.pov_balance = [{"name": n, "percentage": round(t / n_batches)} for n, t in pov_totals.items()]
    merged.global_issues = list(dict.fromkeys(merged.global_issues))
    return merged
