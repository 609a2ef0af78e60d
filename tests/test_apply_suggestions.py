from manuscript_doctor.apply import SuggestionApplier, replace_anchor
from manuscript_doctor.editops import Suggestion
from manuscript_doctor.ir import Document, DocumentSet, Project
from manuscript_doctor.store import SuggestionStore
from manuscript_doctor.workspace import Workspace


def _setup(*docs):
    ws = Workspace(Project(title="Test", documents=DocumentSet(tuple(docs))))
    store = SuggestionStore()
    return ws, store, SuggestionApplier(ws, store)


def test_apply_one_replaces_every_occurrence():
    ws, store, applier = _setup(Document.create("c1", "One", "The sky was blue. The sky was blue again."))
    s = store.append(Suggestion(document_id="c1", original_text="The sky was blue",
                                suggested_text="The sky was crimson"))
    res = applier.apply_one(s)
    doc = ws.project.documents.get("c1")
    assert res.success and res.replacements == 2
    assert doc.text == "The sky was crimson. The sky was crimson again."
    assert s.is_applied


def test_anchor_is_matched_literally_including_punctuation():
    ws, store, applier = _setup(Document.create("c1", "One", "The sky was blue. The sky was blue again."))
    s = store.append(Suggestion(document_id="c1", original_text="The sky was blue.",
                                suggested_text="The sky was crimson."))
    res = applier.apply_one(s)
    assert res.replacements == 1
    assert ws.project.documents.get("c1").text == "The sky was crimson. The sky was blue again."


def test_global_replace_updates_word_count():
    ws, store, applier = _setup(Document.create("c1", "One", "red fox, red fox, red fox"))
    s = store.append(Suggestion(document_id="c1", original_text="red fox", suggested_text="small grey fox"))
    res = applier.apply_one(s)
    doc = ws.project.documents.get("c1")
    assert res.replacements == 3
    assert doc.text == "small grey fox, small grey fox, small grey fox"
    assert doc.word_count == 9


def test_reapplying_is_a_conflict_not_a_duplicate_substitution():
    ws, store, applier = _setup(Document.create("c1", "One", "She said hello."))
    s = store.append(Suggestion(document_id="c1", original_text="hello", suggested_text="hello there"))
    assert applier.apply_one(s).success
    text_after_first = ws.project.documents.get("c1").text
    # "hello" still occurs inside "hello there", so force a stale anchor instead
    stale = store.append(Suggestion(document_id="c1", original_text="She said hello.", suggested_text="x"))
    ws_text = ws.project.documents.get("c1").text
    assert ws_text == text_after_first
    res = applier.apply_one(stale)
    assert res.status == "conflict"
    assert not stale.is_applied
    assert ws.project.documents.get("c1").text == text_after_first


def test_second_apply_of_same_suggestion_conflicts():
    ws, store, applier = _setup(Document.create("c1", "One", "It was a dark night."))
    s = store.append(Suggestion(document_id="c1", original_text="dark night", suggested_text="stormy evening"))
    assert applier.apply_one(s).success
    res = applier.apply_one(s)
    assert res.status == "conflict"
    assert ws.project.documents.get("c1").text == "It was a stormy evening."


def test_missing_document_is_soft_failure():
    ws, store, applier = _setup(Document.create("c1", "One", "text"))
    s = store.append(Suggestion(document_id="gone", original_text="text", suggested_text="words"))
    res = applier.apply_one(s)
    assert res.status == "missing_target"
    assert not s.is_applied
    assert len(ws.history) == 0


def test_anchor_with_regex_metacharacters_is_literal():
    text, count = replace_anchor("Cost: $5 (approx.) and $5 (approx.)", "$5 (approx.)", r"\1 five")
    assert count == 2
    assert text == r"Cost: \1 five and \1 five"
    assert replace_anchor("abc", "", "x") == ("abc", 0)


def test_apply_one_pushes_pre_mutation_snapshot():
    ws, store, applier = _setup(Document.create("c1", "One", "old words here"))
    s = store.append(Suggestion(document_id="c1", original_text="old", suggested_text="new"))
    applier.apply_one(s)
    assert len(ws.history) == 1
    assert ws.history.current.project.documents.get("c1").text == "old words here"


def test_apply_all_sees_earlier_edits_and_skips_conflicts():
    ws, store, applier = _setup(
        Document.create("c1", "One", "Anna walked home."),
        Document.create("c2", "Two", "Nothing to see."),
    )
    first = store.append(Suggestion(document_id="c1", original_text="Anna", suggested_text="Hanna"))
    # only matches after the first suggestion has been applied
    chained = store.append(Suggestion(document_id="c1", original_text="Hanna walked", suggested_text="Hanna ran"))
    stale = store.append(Suggestion(document_id="c2", original_text="missing anchor", suggested_text="x"))
    orphan = store.append(Suggestion(document_id="c9", original_text="x", suggested_text="y"))

    summary = applier.apply_all_remaining()
    assert summary.applied == 2
    assert summary.conflicts == 1
    assert summary.missing == 1
    assert summary.message == "Applied 2 remaining fixes."
    assert ws.project.documents.get("c1").text == "Hanna ran home."
    assert first.is_applied and chained.is_applied
    assert not stale.is_applied and not orphan.is_applied
    # one snapshot for the whole batch
    assert len(ws.history) == 1


def test_apply_all_never_reprocesses_applied_suggestions():
    ws, store, applier = _setup(Document.create("c1", "One", "a b c"))
    s1 = store.append(Suggestion(document_id="c1", original_text="a", suggested_text="a a"))
    applier.apply_one(s1)
    s2 = store.append(Suggestion(document_id="c1", original_text="c", suggested_text="d"))
    unapplied_before = len(store.unapplied())

    summary = applier.apply_all_remaining()
    assert summary.applied <= unapplied_before
    assert [r.suggestion_id for r in summary.results] == [s2.id]
    assert ws.project.documents.get("c1").text == "a a b d"


def test_apply_all_with_nothing_left_is_informational():
    ws, store, applier = _setup(Document.create("c1", "One", "text"))
    summary = applier.apply_all_remaining()
    assert summary.applied == 0
    assert summary.level == "info"
    assert summary.message == "No remaining fixes could be applied."
    assert len(ws.history) == 0
