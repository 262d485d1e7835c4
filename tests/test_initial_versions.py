import pytest

from contentai.documents.models import ChangeType, DocumentKind
from contentai.documents.schemas import InitialCandidate
from contentai.editor.exceptions import InvalidSelectionState, PersistenceFailure, SnapshotNotFound
from contentai.editor.initial import InitialVersionSelection, SelectionState, create_with_candidates
from contentai.editor.snapshots import SnapshotLog

CANDIDATES = [
    InitialCandidate(title="Draft A", content="first take", model_name="model-a"),
    InitialCandidate(title="Draft B", content="second take", model_name="model-b"),
]


async def selection_for(store, document_id):
    return InitialVersionSelection(store, SnapshotLog(document_id, await store.list_snapshots(document_id)))


@pytest.mark.asyncio
async def test_several_candidates_await_selection(store):
    document, snapshots = await create_with_candidates(store, DocumentKind.CANVAS, CANDIDATES)

    assert [s.sequence for s in snapshots] == [1, 2]
    assert all(s.change_type == ChangeType.INITIAL for s in snapshots)
    assert [s.model_name for s in snapshots] == ["model-a", "model-b"]
    assert not any(s.is_primary for s in snapshots)

    selection = await selection_for(store, document.id)
    assert selection.state == SelectionState.AWAITING_PRIMARY_SELECTION


@pytest.mark.asyncio
async def test_single_candidate_is_primary_immediately(store):
    document, snapshots = await create_with_candidates(store, DocumentKind.CANVAS, CANDIDATES[:1])

    assert snapshots[0].is_primary
    assert document.content == "first take"
    selection = await selection_for(store, document.id)
    assert selection.state == SelectionState.EDITABLE


@pytest.mark.asyncio
async def test_choose_primary_sets_document_state(store):
    document, snapshots = await create_with_candidates(store, DocumentKind.CANVAS, CANDIDATES)
    selection = await selection_for(store, document.id)

    primary, updated = await selection.choose_primary(snapshots[1].id)

    assert primary.is_primary
    assert updated.content == "second take"
    assert updated.title == "Draft B"
    assert selection.state == SelectionState.EDITABLE
    stored = {s.id: s for s in store.snapshots[document.id]}
    assert stored[snapshots[1].id].is_primary
    assert not stored[snapshots[0].id].is_primary


@pytest.mark.asyncio
async def test_primary_cannot_be_chosen_twice(store):
    document, snapshots = await create_with_candidates(store, DocumentKind.CANVAS, CANDIDATES)
    selection = await selection_for(store, document.id)
    await selection.choose_primary(snapshots[0].id)

    with pytest.raises(InvalidSelectionState):
        await selection.choose_primary(snapshots[1].id)


@pytest.mark.asyncio
async def test_unknown_candidate_is_not_found(store):
    document, snapshots = await create_with_candidates(store, DocumentKind.CANVAS, CANDIDATES)
    other, other_snapshots = await create_with_candidates(store, DocumentKind.CANVAS, CANDIDATES)
    selection = await selection_for(store, document.id)

    with pytest.raises(SnapshotNotFound):
        await selection.choose_primary(other_snapshots[0].id)
    assert selection.state == SelectionState.AWAITING_PRIMARY_SELECTION


@pytest.mark.asyncio
async def test_store_failure_keeps_awaiting(store):
    document, snapshots = await create_with_candidates(store, DocumentKind.CANVAS, CANDIDATES)
    selection = await selection_for(store, document.id)
    store.failing.add("mark_primary")

    with pytest.raises(PersistenceFailure):
        await selection.choose_primary(snapshots[0].id)
    assert selection.state == SelectionState.AWAITING_PRIMARY_SELECTION


@pytest.mark.asyncio
async def test_document_without_candidates_is_editable(store, document):
    selection = await selection_for(store, document.id)
    assert selection.state == SelectionState.EDITABLE


@pytest.mark.asyncio
async def test_at_least_one_candidate_is_required(store):
    with pytest.raises(ValueError):
        await create_with_candidates(store, DocumentKind.CANVAS, [])
