"""
Prompts and context builders for the Claude-backed collaborators.

The JSON shapes requested here are the ones parsed by
manuscript_doctor.analysis and manuscript_doctor.editops.
"""
from __future__ import annotations
from typing import Iterable

from manuscript_doctor.ir import Document, Project

SYSTEM_PROMPT = """You are a developmental editor working on a novel manuscript.

Follow the instructions exactly. When asked for JSON, respond with a single JSON
value and nothing else. When asked to rewrite, respond with the rewritten chapter
text only: no preamble, no commentary, no markdown fences.

Never invent new plot events, characters or places unless the instructions ask for
it. Preserve the author's voice, tense and point of view."""

GLOBAL_EDIT_PROMPT = (
    "Analyze this chapter for global edits (prose, pacing, consistency) and suggest one "
    "specific change. The originalText must be copied verbatim from the chapter. "
    'Respond in JSON: { "originalText": string, "suggestedText": string, "rationale": string, '
    '"type": "prose" | "pacing" | "consistency" | "dialogue" | "plot" }'
)

REWRITE_PROMPT_TEMPLATE = """Rewrite the following chapter based on this suggestion: "{instructions}"

{context}
Maintain word count around {word_count}.

CHAPTER:
{text}"""

SYNOPSIS_PROMPT = (
    "Generate a logline and a full synopsis for the novel. "
    'Respond in JSON: { "logline": string, "fullSynopsis": string }'
)

HEALTH_PROMPT = (
    "Analyze the manuscript for health: character usage, POV, pacing, and global issues. "
    'Respond in JSON: { "characterUsage": [{"name": string, "count": number}], '
    '"povBalance": [{"name": string, "percentage": number}], '
    '"pacingMap": [{"chapterId": string, "title": string, "pacingScore": number, "tensionScore": number}], '
    '"globalIssues": string[], '
    '"conflictProgression": [{"chapterTitle": string, "conflict": string}] }'
)

HEALTH_BATCH_PROMPT = (
    "Analyze these chapters for character usage, POV, and pacing. "
    'Respond in JSON: { "characterUsage": [{"name": string, "count": number}], '
    '"povBalance": [{"name": string, "percentage": number}], '
    '"pacingMap": [{"title": string, "pacingScore": number, "tensionScore": number}], '
    '"globalIssues": string[] }'
)

CONTINUITY_PROMPT = (
    "Analyze these chapters for continuity errors. "
    'Respond in JSON: { "issues": [{"type": string, "description": string, "location": string, '
    '"severity": "low" | "medium" | "high"}] }'
)

THEMES_PROMPT = (
    "Analyze the plot. Identify plot threads, subplots, and foreshadowing. "
    'Respond in JSON: { "plotThreads": [{"thread": string, '
    '"setup": {"chapterTitle": string, "description": string}, '
    '"payoff": {"chapterTitle": string, "description": string, "status": "resolved" | "unresolved" | "partial"}}], '
    '"subplots": [{"title": string, "summary": string, '
    '"progression": "setup" | "developing" | "resolved" | "abandoned", "involvedCharacters": string[]}], '
    '"foreshadowing": [{"element": string, "suggestion": string, "chapterTitle": string}] }'
)

COHESION_PROMPT = (
    "Analyze this multi-book manuscript for cohesion issues (naming, timeline, plot flow). "
    'Respond in JSON: { "namingIssues": [{"issueType": "duplicate" | "similar" | "inconsistentSpelling", '
    '"namesInvolved": string[], "details": string, "location": string}], '
    '"timelineIssues": [{"characterName": string, "issue": string, "details": string, '
    '"chaptersInvolved": string[]}], '
    '"flowAnalysis": { "book1to2": string, "book2to3": string, "overallArc": string } }'
)


def _condense(doc: Document, max_chars: int, excerpt: int, head: int, tail: int) -> str:
    text = doc.text
    if len(text) <= max_chars:
        return text
    if doc.summary:
        return f"(Summary): {doc.summary}\n(Excerpt): {text[:excerpt]}..."
    return f"{text[:head]}\n...[omitted]...\n{text[len(text) - tail:]}"


def build_project_context(
    documents: Iterable[Document],
    max_chars_per_chapter: int = 4000,
    excerpt_chars: int = 1000,
    head_chars: int = 1500,
    tail_chars: int = 1500,
) -> str:
    """Whole-manuscript context with long chapters reduced to excerpts."""
    return "\n\n".join(
        f"### {d.title}\n{_condense(d, max_chars_per_chapter, excerpt_chars, head_chars, tail_chars)}"
        for d in documents
    )


def build_rewrite_context(project: Project) -> str:
    lines = []
    if project.title:
        genre = f" ({project.genre})" if project.genre else ""
        lines.append(f'The chapter is from the novel "{project.title}"{genre}.')
    if project.story_bible:
        lines.append(f"Context: {project.story_bible}")
    return "\n".join(lines)
