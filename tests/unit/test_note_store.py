"""Unit tests for NoteStore."""

import threading

import pytest

from notesync.exceptions import IndexOutOfRange, StoreInvariantViolation
from notesync.models.note import Note, SyncStatus
from notesync.store.note_store import NoteStore
from notesync.store.observable import SerialDispatcher


def make_note(note_id: str, name: str = "", description: str = "") -> Note:
    """Helper to create a test note."""
    return Note(id=note_id, name=name or note_id, description=description)


class TestAddNote:
    """Tests for appending notes."""

    def test_starts_empty_and_signed_out(self, store):
        """Test the initial state."""
        assert store.notes == ()
        assert len(store) == 0
        assert store.is_signed_in is False

    def test_add_keeps_call_order(self, store):
        """Test that notes appear in the order they were added."""
        ids = [f"n{i}" for i in range(10)]
        for note_id in ids:
            store.add_note(make_note(note_id))

        assert len(store) == 10
        assert [n.id for n in store.notes] == ids

    def test_add_note_without_image(self, store):
        """Test that a note without an image is accepted."""
        store.add_note(Note.create("Milk"))
        assert store.notes[0].image is None

    def test_duplicate_id_rejected(self, store):
        """Test that identifiers stay unique."""
        store.add_note(make_note("a"))
        with pytest.raises(StoreInvariantViolation):
            store.add_note(make_note("a", name="other"))
        assert len(store) == 1

    def test_previous_snapshot_unchanged(self, store):
        """Test that a snapshot held by a caller never changes."""
        store.add_note(make_note("a"))
        snapshot = store.notes

        store.add_note(make_note("b"))

        assert [n.id for n in snapshot] == ["a"]
        assert isinstance(snapshot, tuple)


class TestDeleteNoteAt:
    """Tests for positional deletion."""

    def test_scenario_milk_eggs(self, store):
        """Test add Milk, add Eggs, delete at 0."""
        milk = make_note("a", "Milk", "2%")
        eggs = make_note("b", "Eggs", "dozen")
        store.add_note(milk)
        store.add_note(eggs)
        assert [n.name for n in store.notes] == ["Milk", "Eggs"]

        removed = store.delete_note_at(0)

        assert removed == milk
        assert store.notes == (eggs,)

    def test_following_indices_compact(self, store):
        """Test that later notes shift down by one."""
        for note_id in "abcd":
            store.add_note(make_note(note_id))

        assert store.delete_note_at(1).id == "b"
        assert [n.id for n in store.notes] == ["a", "c", "d"]
        assert store.index_of("c") == 1

    def test_index_past_end(self, store):
        """Test that an index equal to the length fails."""
        store.add_note(make_note("a"))
        with pytest.raises(IndexOutOfRange) as exc_info:
            store.delete_note_at(1)

        assert exc_info.value.index == 1
        assert exc_info.value.length == 1
        assert len(store) == 1

    def test_negative_index_rejected(self, store):
        """Test that negative indices are not treated Python-style."""
        store.add_note(make_note("a"))
        with pytest.raises(IndexOutOfRange):
            store.delete_note_at(-1)
        assert len(store) == 1

    def test_empty_store(self, store):
        """Test deleting from an empty store."""
        with pytest.raises(IndexError):
            store.delete_note_at(0)


class TestResetAndFlag:
    """Tests for reset_notes and set_signed_in."""

    def test_reset_empties_store(self, store):
        """Test reset regardless of prior length."""
        for note_id in "abc":
            store.add_note(make_note(note_id))
        store.reset_notes()
        assert len(store) == 0

    def test_reset_empty_store(self, store):
        """Test reset on an empty store."""
        store.reset_notes()
        assert store.notes == ()

    def test_sign_out_scenario(self, store):
        """Test sign in, reset, sign out."""
        store.add_note(make_note("a"))
        store.set_signed_in(True)
        store.reset_notes()
        store.set_signed_in(False)

        assert store.is_signed_in is False
        assert store.notes == ()


class TestUpdateAndRemove:
    """Tests for id-based mutations."""

    def test_update_keeps_position(self, store):
        """Test that an updated note stays where it was."""
        for note_id in "abc":
            store.add_note(make_note(note_id))

        updated = store.update_note("b", lambda n: n.with_status(SyncStatus.FAILED))

        assert updated.sync_status == SyncStatus.FAILED
        assert store.notes[1] is updated
        assert [n.id for n in store.notes] == ["a", "b", "c"]

    def test_update_unknown_id(self, store):
        """Test that updating a missing note does nothing."""
        assert store.update_note("missing", lambda n: n) is None

    def test_update_cannot_change_id(self, store):
        """Test that a replacement must keep the id."""
        store.add_note(make_note("a"))
        with pytest.raises(StoreInvariantViolation):
            store.update_note("a", lambda n: make_note("b"))
        assert store.notes[0].id == "a"

    def test_remove_note(self, store):
        """Test removal by id."""
        store.add_note(make_note("a"))
        store.add_note(make_note("b"))

        assert store.remove_note("a").id == "a"
        assert store.remove_note("a") is None
        assert [n.id for n in store.notes] == ["b"]

    def test_get_note(self, store):
        """Test lookup by id."""
        note = make_note("a")
        store.add_note(note)
        assert store.get_note("a") == note
        assert store.get_note("b") is None

    def test_replace_notes_notifies_once(self, store):
        """Test that a replacement reaches observers as one snapshot."""
        store.add_note(make_note("a"))
        seen = []
        store.subscribe_to_notes(lambda notes: seen.append([n.id for n in notes]))

        result = store.replace_notes(lambda current: [make_note("b"), *current])

        assert [n.id for n in result] == ["b", "a"]
        assert seen == [["a"], ["b", "a"]]

    def test_replace_notes_rejects_duplicate_ids(self, store):
        """Test that a replacement repeating an id leaves the store unchanged."""
        store.add_note(make_note("a"))

        with pytest.raises(StoreInvariantViolation):
            store.replace_notes(lambda current: [make_note("b"), make_note("b")])
        assert [n.id for n in store.notes] == ["a"]

    def test_failing_observer_does_not_abort_mutation(self, store):
        """Test that an observer error does not reach the mutating caller."""
        store.subscribe_to_notes(lambda notes: 1 / len(notes))

        store.add_note(make_note("a"))

        assert len(store) == 1


class TestSubscriptions:
    """Tests for observers."""

    def test_replay_on_subscribe(self, store):
        """Test that a late subscriber sees every earlier mutation."""
        store.add_note(make_note("a"))
        store.add_note(make_note("b"))
        store.delete_note_at(0)

        received = []
        store.subscribe_to_notes(received.append)

        assert len(received) == 1
        assert [n.id for n in received[0]] == ["b"]

    def test_notified_in_mutation_order(self, store):
        """Test that every mutation produces one notification, in order."""
        lengths = []
        store.subscribe_to_notes(lambda notes: lengths.append(len(notes)))

        store.add_note(make_note("a"))
        store.add_note(make_note("b"))
        store.delete_note_at(0)
        store.reset_notes()

        assert lengths == [0, 1, 2, 1, 0]

    def test_signed_in_observer(self, store):
        """Test the signed-in flag observer."""
        received = []
        store.subscribe_to_signed_in(received.append)

        store.set_signed_in(True)
        store.set_signed_in(False)

        assert received == [False, True, False]

    def test_dispose_stops_notifications(self, store):
        """Test that a disposed subscription receives nothing more."""
        received = []
        subscription = store.subscribe_to_notes(received.append)
        subscription.dispose()
        subscription.dispose()

        store.add_note(make_note("a"))

        assert len(received) == 1
        assert subscription.active is False

    def test_reentrant_mutation_keeps_order(self, store):
        """Test that an observer mutating the store does not reorder delivery."""

        def add_second(notes):
            if len(notes) == 1:
                store.add_note(make_note("b"))

        lengths = []
        store.subscribe_to_notes(add_second)
        store.subscribe_to_notes(lambda notes: lengths.append(len(notes)))

        store.add_note(make_note("a"))

        assert lengths == [0, 1, 2]
        assert len(store) == 2

    def test_serial_dispatcher_delivers_on_owner_thread(self):
        """Test delivery on a single owner thread."""
        dispatcher = SerialDispatcher(name="owner")
        store = NoteStore(dispatcher=dispatcher)
        threads = []
        lengths = []

        def observe(notes):
            threads.append(threading.current_thread().name)
            lengths.append(len(notes))

        try:
            store.subscribe_to_notes(observe)
            store.add_note(make_note("a"))
            store.add_note(make_note("b"))
            dispatcher.flush(timeout=5)
        finally:
            dispatcher.shutdown()

        assert lengths == [0, 1, 2]
        assert all(name.startswith("owner") for name in threads)


class TestConcurrency:
    """Tests for mutations from several threads."""

    def test_concurrent_adds_are_not_lost(self, store):
        """Test that concurrent appends all land, each exactly once."""
        per_thread = 200
        barrier = threading.Barrier(2)

        def worker(prefix):
            barrier.wait()
            for i in range(per_thread):
                store.add_note(make_note(f"{prefix}{i}"))

        threads = [threading.Thread(target=worker, args=(p,)) for p in ("x", "y")]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(store) == 2 * per_thread
        assert len({n.id for n in store.notes}) == 2 * per_thread

    def test_concurrent_notifications_match_snapshots(self, store):
        """Test that observers see strictly growing snapshots under concurrency."""
        lengths = []
        store.subscribe_to_notes(lambda notes: lengths.append(len(notes)))

        def worker(prefix):
            for i in range(50):
                store.add_note(make_note(f"{prefix}{i}"))

        threads = [threading.Thread(target=worker, args=(p,)) for p in ("x", "y", "z")]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert lengths == list(range(151))
