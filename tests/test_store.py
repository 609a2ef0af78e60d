import asyncio

import pytest

from manuscript_doctor.editops import Suggestion, normalize_kind
from manuscript_doctor.ir import Document, DocumentSet
from manuscript_doctor.runtime import CancelToken
from manuscript_doctor.store import (
    STATUS_CANCELLED,
    STATUS_COMPLETE,
    STATUS_FAILED,
    GlobalEditScan,
    ScanStatus,
    SuggestionStore,
)

DOCS = DocumentSet((Document.create("c1", "One", "First chapter text."),
                    Document.create("c2", "Two", "Second chapter text.")))


def _suggestion(doc_id, original="text", suggested="words", kind="prose"):
    return Suggestion(document_id=doc_id, original_text=original, suggested_text=suggested, kind=kind)


def test_append_assigns_unique_ids_and_resets_status():
    store = SuggestionStore()
    a = store.append(Suggestion(document_id="c1", original_text="a", suggested_text="b", id="dup", status="applied"))
    b = store.append(Suggestion(document_id="c1", original_text="c", suggested_text="d", id="dup"))
    c = store.append(_suggestion("c2", kind="dialogue"))
    assert a.id == "dup"
    assert b.id and b.id != "dup"
    assert c.id
    assert not a.is_applied
    assert c.kind == "other"
    assert [s.id for s in store.suggestions] == [a.id, b.id, c.id]
    assert store.get(b.id) is b


def test_normalize_kind():
    assert normalize_kind("Pacing") == "pacing"
    assert normalize_kind("plot") == "other"
    assert normalize_kind("") == "other"


def test_suggestion_from_model_payload():
    s = Suggestion.from_dict({"originalText": "blue", "suggestedText": "crimson",
                              "rationale": "stronger image", "type": "prose"})
    assert s.original_text == "blue"
    assert s.suggested_text == "crimson"
    assert s.kind == "prose"
    assert s.status == "unapplied"


def test_resync_flips_status_from_document_text():
    store = SuggestionStore()
    applied = store.append(_suggestion("c1", original="First", suggested="Opening"))
    store.mark_applied(applied.id)
    pending = store.append(_suggestion("c2", original="Old", suggested="Second"))

    flipped = store.resync(DOCS)
    assert flipped == 2
    # "First" is back and "Opening" is gone
    assert not applied.is_applied
    # "Second" is present and "Old" is not
    assert pending.is_applied


def test_display_progress_is_clamped():
    assert ScanStatus(progress=150).display_progress == 100
    assert ScanStatus(progress=-5).display_progress == 0
    assert ScanStatus(progress=42.5).display_progress == 42.5


@pytest.mark.asyncio
async def test_scan_progress_can_exceed_100_but_displays_clamped():
    store = SuggestionStore()
    scan = GlobalEditScan(store)
    updates = []

    async def producer(documents, on_progress, on_suggestion):
        for doc in documents:
            on_progress(f"Analyzing {doc.title}...")
            updates.append(scan.status.status_text)
        on_suggestion(_suggestion("c1"))
        on_suggestion(_suggestion("c1", original="First"))
        on_suggestion(_suggestion("c2"))

    status = await scan.run(producer, DOCS)
    assert updates == ["Analyzing One...", "Analyzing Two..."]
    assert status.status_text == STATUS_COMPLETE
    assert len(store) == 3
    assert status.progress == 150
    assert status.display_progress == 100
    assert not status.is_running


@pytest.mark.asyncio
async def test_failing_producer_keeps_partial_results():
    store = SuggestionStore()
    scan = GlobalEditScan(store)

    async def producer(documents, on_progress, on_suggestion):
        on_suggestion(_suggestion("c1"))
        raise RuntimeError("stream dropped")

    status = await scan.run(producer, DOCS)
    assert status.status_text == STATUS_FAILED
    assert status.error == "stream dropped"
    assert len(store) == 1
    assert not status.is_running


@pytest.mark.asyncio
async def test_new_scan_clears_previous_suggestions():
    store = SuggestionStore()
    store.append(_suggestion("c1"))
    scan = GlobalEditScan(store)

    async def producer(documents, on_progress, on_suggestion):
        on_suggestion(_suggestion("c2"))

    await scan.run(producer, DOCS)
    assert [s.document_id for s in store.suggestions] == ["c2"]


@pytest.mark.asyncio
async def test_cancelled_scan_keeps_what_it_found():
    store = SuggestionStore()
    scan = GlobalEditScan(store)
    token = CancelToken()

    async def producer(documents, on_progress, on_suggestion):
        on_progress("Analyzing One...")
        on_suggestion(_suggestion("c1"))
        token.cancel()
        on_progress("Analyzing Two...")
        on_suggestion(_suggestion("c2"))

    status = await scan.run(producer, DOCS, token)
    assert status.status_text == STATUS_CANCELLED
    assert len(store) == 1


@pytest.mark.asyncio
async def test_second_scan_while_running_is_ignored():
    store = SuggestionStore()
    scan = GlobalEditScan(store)
    release = asyncio.Event()

    async def slow(documents, on_progress, on_suggestion):
        on_suggestion(_suggestion("c1"))
        await release.wait()

    async def other(documents, on_progress, on_suggestion):
        raise AssertionError("should not start")

    first = asyncio.create_task(scan.run(slow, DOCS))
    await asyncio.sleep(0)
    status = await scan.run(other, DOCS)
    assert status.is_running
    assert len(store) == 1
    release.set()
    assert (await first).status_text == STATUS_COMPLETE
