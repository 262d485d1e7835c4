import asyncio

import pytest
import pytest_asyncio

from contentai.documents.models import ChangeType, DocumentKind
from contentai.editor.autosave import AutosaveScheduler
from contentai.editor.controller import SaveRestoreController
from contentai.editor.session import DraftSession
from contentai.editor.snapshots import SnapshotLog

INTERVAL = 0.05
DEBOUNCE = 0.02


@pytest_asyncio.fixture
async def script(store):
    return await store.create(
        DocumentKind.YOUTUBE_SCRIPT,
        {"title": "Episode 1", "content": "intro", "transcript": "raw transcript"},
    )


def scheduler_for(store, document, interval=INTERVAL, debounce=DEBOUNCE):
    session = DraftSession.open(document, untracked=("transcript",))
    controller = SaveRestoreController(session, store, SnapshotLog(document.id))
    return AutosaveScheduler(session, controller, store, interval=interval, debounce=debounce)


@pytest.mark.asyncio
async def test_periodic_tick_saves_dirty_session(store, script):
    scheduler = scheduler_for(store, script)
    scheduler.start()
    scheduler.session.edit("content", "intro, revised")

    await asyncio.sleep(INTERVAL * 3)
    await scheduler.aclose()

    snapshots = store.snapshots[script.id]
    assert len(snapshots) == 1
    assert snapshots[0].change_type == ChangeType.AUTO
    assert not scheduler.session.is_dirty()


@pytest.mark.asyncio
async def test_tick_on_clean_session_does_nothing(store, script):
    scheduler = scheduler_for(store, script)
    assert await scheduler.tick() is False
    assert store.calls == []


@pytest.mark.asyncio
async def test_tick_skips_while_a_save_is_in_flight(store, script):
    scheduler = scheduler_for(store, script)
    scheduler.session.edit("content", "changed")
    store.update_gate = asyncio.Event()

    saving = asyncio.create_task(scheduler.controller.save())
    while not store.updates():
        await asyncio.sleep(0)

    assert await scheduler.tick() is False
    store.update_gate.set()
    await saving
    assert len(store.updates()) == 1


@pytest.mark.asyncio
async def test_autosave_failure_is_logged_and_retried(store, script, caplog):
    scheduler = scheduler_for(store, script)
    scheduler.session.edit("content", "changed")
    store.failing.add("update")

    assert await scheduler.tick() is False
    assert "Autosave failed" in caplog.text
    assert scheduler.session.is_dirty()

    store.failing.clear()
    assert await scheduler.tick() is True
    assert not scheduler.session.is_dirty()


@pytest.mark.asyncio
async def test_debounced_field_written_once_after_quiet_period(store, script):
    scheduler = scheduler_for(store, script, interval=60)
    scheduler.start()

    for text in ("raw t", "raw tr", "raw transcript, cleaned"):
        scheduler.session.edit("transcript", text)
        await asyncio.sleep(DEBOUNCE / 4)
    await asyncio.sleep(DEBOUNCE * 3)
    await scheduler.aclose()

    assert store.updates() == [{"transcript": "raw transcript, cleaned"}]
    assert store.snapshots[script.id] == []
    assert not scheduler.session.is_dirty()


@pytest.mark.asyncio
async def test_debounced_write_skipped_when_value_unchanged(store, script):
    scheduler = scheduler_for(store, script, interval=60)
    scheduler.start()
    scheduler.session.edit("transcript", "raw transcript")

    await asyncio.sleep(DEBOUNCE * 3)
    await scheduler.aclose()
    assert store.updates() == []


@pytest.mark.asyncio
async def test_debounced_write_failure_is_only_logged(store, script, caplog):
    scheduler = scheduler_for(store, script, interval=60)
    scheduler.start()
    store.failing.add("update")
    scheduler.session.edit("transcript", "new words")

    await asyncio.sleep(DEBOUNCE * 3)
    await scheduler.aclose()
    assert "Autosave of field 'transcript' failed" in caplog.text


@pytest.mark.asyncio
async def test_tracked_field_edits_do_not_trigger_field_autosave(store, script):
    scheduler = scheduler_for(store, script, interval=60)
    scheduler.start()
    scheduler.session.edit("content", "body change")

    await asyncio.sleep(DEBOUNCE * 3)
    await scheduler.aclose()
    assert store.updates() == []


@pytest.mark.asyncio
async def test_flush_writes_pending_field_immediately(store, script):
    scheduler = scheduler_for(store, script, interval=60, debounce=60)
    scheduler.start()
    scheduler.session.edit("transcript", "flushed")

    await scheduler.flush()
    assert store.updates() == [{"transcript": "flushed"}]
    await scheduler.aclose()


@pytest.mark.asyncio
async def test_no_persistence_after_close(store, script):
    scheduler = scheduler_for(store, script)
    scheduler.start()
    scheduler.session.edit("content", "dirty body")
    scheduler.session.edit("transcript", "dirty transcript")

    scheduler.session.close()
    await asyncio.sleep(max(INTERVAL, DEBOUNCE) * 4)

    assert store.calls == []
    assert not scheduler.running


@pytest.mark.asyncio
async def test_sessions_have_independent_timers(store, script):
    other = await store.create(DocumentKind.CANVAS, {"title": "Note", "content": "n"})
    first = scheduler_for(store, script)
    second = scheduler_for(store, other)
    first.start()
    second.start()
    first.session.edit("content", "changed")

    second.session.close()
    await asyncio.sleep(INTERVAL * 3)
    await first.aclose()

    assert len(store.snapshots[script.id]) == 1
    assert store.snapshots[other.id] == []


@pytest.mark.asyncio
async def test_full_save_does_not_overwrite_a_newer_transcript(store, script):
    scheduler = scheduler_for(store, script, interval=60, debounce=60)
    scheduler.start()
    scheduler.session.edit("content", "intro, revised")

    gate = store.update_gate = asyncio.Event()
    saving = asyncio.create_task(scheduler.controller.save(ChangeType.AUTO))
    while not store.updates():
        await asyncio.sleep(0)

    # The transcript write lands while the full save is still held
    store.update_gate = None
    scheduler.session.edit("transcript", "raw transcript, cleaned")
    await scheduler.flush()

    gate.set()
    snapshot = await saving
    await scheduler.aclose()

    assert "transcript" not in store.updates()[0]
    assert "transcript" not in snapshot.fields
    assert (await store.get(script.id)).meta["transcript"] == "raw transcript, cleaned"


@pytest.mark.asyncio
async def test_periodic_loop_survives_an_unexpected_tick_error(store, script, caplog, monkeypatch):
    scheduler = scheduler_for(store, script)
    original_tick = scheduler.tick
    ticks = []

    async def flaky_tick():
        ticks.append(True)
        if len(ticks) == 1:
            raise ValueError("unexpected")
        return await original_tick()

    monkeypatch.setattr(scheduler, "tick", flaky_tick)
    scheduler.start()
    scheduler.session.edit("content", "intro, revised")

    await asyncio.sleep(INTERVAL * 4)
    assert scheduler.running
    await scheduler.aclose()

    assert len(ticks) >= 2
    assert "Autosave tick failed" in caplog.text
    assert len(store.snapshots[script.id]) == 1
