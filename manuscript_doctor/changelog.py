from __future__ import annotations
from datetime import datetime
from typing import Any, Dict, List, Optional
import json

from manuscript_doctor.analysis import AnalysisRecord
from manuscript_doctor.ir import Project


def write_json(path: str, payload: Dict[str, Any]) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)


def read_json(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def load_project(path: str) -> Project:
    return Project.from_dict(read_json(path))


def save_project(path: str, project: Project) -> None:
    write_json(path, project.to_dict())


def write_txt(path: str, title: str, record: AnalysisRecord) -> None:
    with open(path, "w", encoding="utf-8") as f:
        f.write(render_analysis_report(title, record))


def render_analysis_report(title: str, record: AnalysisRecord, generated_at: Optional[datetime] = None) -> str:
    """Flat, human-readable export of whichever analysis kinds are present."""
    generated_at = generated_at or datetime.now()
    lines: List[str] = []
    lines.append(f'Story Analyzer Report for "{title}"')
    lines.append(f"Report Generated: {generated_at.strftime('%Y-%m-%d %H:%M:%S')}")
    lines.append("")

    if record.synopsis is not None and record.synopsis.full_synopsis:
        lines.append("--- SYNOPSIS ---")
        lines.append(f"Logline: {record.synopsis.logline}")
        lines.append("")
        lines.append(record.synopsis.full_synopsis)
        lines.append("")

    if record.health is not None:
        lines.append("--- PROJECT HEALTH ---")
        lines.append("Global Issues:")
        for issue in record.health.global_issues:
            lines.append(f"- {issue}")
        if record.health.pov_balance:
            lines.append("POV Balance:")
            for p in record.health.pov_balance:
                lines.append(f"- {p.get('name')}: {p.get('percentage')}%")
        lines.append("")

    if record.continuity is not None:
        lines.append("--- CONTINUITY ISSUES ---")
        if not record.continuity:
            lines.append("No continuity issues found.")
        for i in record.continuity:
            lines.append(f"- [{i.severity}] {i.description} ({i.location})")
        lines.append("")

    if record.themes is not None:
        lines.append("--- PLOT THREADS ---")
        for t in record.themes.plot_threads:
            setup = t.setup.get("chapterTitle", "?")
            payoff = t.payoff.get("chapterTitle", "?")
            lines.append(f"- {t.thread} (Setup: {setup}, Payoff: {payoff} [{t.payoff_status}])")
        lines.append("")

    if record.cohesion is not None:
        lines.append("--- COHESION ---")
        lines.append("Naming Issues:")
        for i in record.cohesion.naming_issues:
            lines.append(f"- {i.details}")
        lines.append("")
        lines.append("Timeline Issues:")
        for i in record.cohesion.timeline_issues:
            lines.append(f"- {i.details}")
        for key, value in record.cohesion.flow_analysis.items():
            lines.append(f"Flow ({key}): {value}")
        lines.append("")

    if record.is_empty():
        lines.append("No analysis has been run yet.")
    return "\n".join(lines)
