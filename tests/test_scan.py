import asyncio

import pytest

from manuscript_doctor.analysis import (
    AnalysisRecord,
    ContinuityIssue,
    ProjectHealth,
    extract_issues,
    has_issues_to_fix,
    merge_health_batches,
    parse_result,
)
from manuscript_doctor.ir import Document, DocumentSet, Project
from manuscript_doctor.runtime import ScanInProgressError
from manuscript_doctor.scan import ScanOrchestrator
from manuscript_doctor.workspace import Workspace


def _workspace():
    docs = (Document.create("c1", "Arrival", "Mara reached the gate."),
            Document.create("c2", "Departure", "Mara left the city."))
    return Workspace(Project(title="Novel", documents=DocumentSet(docs)))


HEALTH = ProjectHealth(global_issues=["Sagging middle", "Too many POVs"])


@pytest.mark.asyncio
async def test_continuity_scan_leaves_health_untouched():
    ws = _workspace()

    async def run_scan(kind, documents):
        if kind == "health":
            return HEALTH
        return [ContinuityIssue(type="timeline", description="Mara is in two places", location="Ch 2")]

    orchestrator = ScanOrchestrator(ws, run_scan)
    assert (await orchestrator.run("health")).success
    before = ws.project.analysis.health

    outcome = await orchestrator.run("continuity")
    assert outcome.success
    analysis = ws.project.analysis
    assert analysis.health is before
    assert analysis.continuity[0].description == "Mara is in two places"
    assert orchestrator.issues("continuity") == ["Mara is in two places"]
    assert orchestrator.states["continuity"].state == "succeeded"


@pytest.mark.asyncio
async def test_failed_scan_keeps_previous_result():
    ws = _workspace()
    calls = []

    async def run_scan(kind, documents):
        calls.append(kind)
        if len(calls) > 1:
            raise RuntimeError("bad JSON")
        return HEALTH

    orchestrator = ScanOrchestrator(ws, run_scan)
    await orchestrator.run("health")
    record = ws.project.analysis

    outcome = await orchestrator.run("health")
    assert not outcome.success
    assert "bad JSON" in outcome.error
    assert ws.project.analysis == record
    assert orchestrator.states["health"].state == "failed"
    assert not orchestrator.is_running("health")


@pytest.mark.asyncio
async def test_scan_merge_does_not_take_a_snapshot():
    ws = _workspace()

    async def run_scan(kind, documents):
        return HEALTH

    await ScanOrchestrator(ws, run_scan).run("health")
    assert len(ws.history) == 0


@pytest.mark.asyncio
async def test_same_kind_cannot_run_twice_but_other_kinds_can():
    ws = _workspace()
    release = asyncio.Event()

    async def run_scan(kind, documents):
        if kind == "health":
            await release.wait()
            return HEALTH
        return []

    orchestrator = ScanOrchestrator(ws, run_scan)
    first = asyncio.create_task(orchestrator.run("health"))
    await asyncio.sleep(0)
    assert orchestrator.is_running("health")

    with pytest.raises(ScanInProgressError):
        await orchestrator.run("health")
    assert (await orchestrator.run("continuity")).success

    release.set()
    assert (await first).success
    assert ws.project.analysis.health is HEALTH
    assert ws.project.analysis.continuity == []


@pytest.mark.asyncio
async def test_unknown_kind_is_rejected():
    async def run_scan(kind, documents):
        return None

    with pytest.raises(ValueError):
        await ScanOrchestrator(_workspace(), run_scan).run("vibes")


@pytest.mark.asyncio
async def test_hung_scan_times_out():
    async def run_scan(kind, documents):
        await asyncio.sleep(5)

    outcome = await ScanOrchestrator(_workspace(), run_scan, call_timeout=0.01).run("synopsis")
    assert not outcome.success
    assert "timed out" in outcome.error


def test_extract_issues_per_kind():
    record = AnalysisRecord()
    assert extract_issues(record, "health") == []
    assert not has_issues_to_fix(record, "health")

    record = record.merge("health", HEALTH)
    record = record.merge("themes", parse_result("themes", {"plotThreads": [
        {"thread": "The lost ring", "payoff": {"status": "unresolved"}},
        {"thread": "The feud", "payoff": {"status": "resolved"}},
        {"thread": "The map", "payoff": {"status": "partial"}},
    ]}))
    record = record.merge("cohesion", parse_result("cohesion", {
        "namingIssues": [{"issueType": "similar", "details": "Jon and John"}],
        "timelineIssues": [{"characterName": "Mara", "issue": "age", "details": "Mara ages backwards"}],
    }))

    assert extract_issues(record, "health") == ["Sagging middle", "Too many POVs"]
    assert extract_issues(record, "themes") == [
        "Address plot thread: The lost ring (Payoff: unresolved)",
        "Address plot thread: The map (Payoff: partial)",
    ]
    assert extract_issues(record, "cohesion") == ["Jon and John", "Mara ages backwards"]
    assert extract_issues(record, "synopsis") == []
    assert has_issues_to_fix(record, "themes")


def test_continuity_payload_accepts_list_or_wrapped_issues():
    wrapped = parse_result("continuity", {"issues": [{"description": "A"}]})
    bare = parse_result("continuity", [{"description": "B", "severity": "high"}])
    assert [i.description for i in wrapped] == ["A"]
    assert bare[0].severity == "high"


def test_merge_health_batches():
    merged = merge_health_batches([
        {"characterUsage": [{"name": "Mara", "count": 10}],
         "povBalance": [{"name": "Mara", "percentage": 80}],
         "pacingMap": [{"title": "Ch 1", "pacingScore": 5}],
         "globalIssues": ["Slow start", "Flat villain"]},
        {"characterUsage": [{"name": "Mara", "count": 4}, {"name": "Ivo", "count": 3}],
         "povBalance": [{"name": "Mara", "percentage": 50}, {"name": "Ivo", "percentage": 50}],
         "pacingMap": [{"title": "Ch 6", "pacingScore": 7}],
         "globalIssues": ["Flat villain"]},
    ])
    assert merged.character_usage == [{"name": "Mara", "count": 14}, {"name": "Ivo", "count": 3}]
    assert merged.pov_balance == [{"name": "Mara", "percentage": 65}, {"name": "Ivo", "percentage": 25}]
    assert [p["title"] for p in merged.pacing_map] == ["Ch 1", "Ch 6"]
    assert merged.global_issues == ["Slow start", "Flat villain"]


def test_analysis_record_round_trip_keeps_kinds_independent():
    record = AnalysisRecord().merge("health", HEALTH)
    restored = AnalysisRecord.from_dict(record.to_dict())
    assert restored.health.global_issues == HEALTH.global_issues
    assert restored.continuity is None
    assert not restored.is_empty()
    with pytest.raises(ValueError):
        record.merge("vibes", None)
