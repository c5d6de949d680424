"""Tests for SubmissionService: upload, selective removal, cancellation."""
import threading
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import patch

import pytest

from apcollector.errors import (
    BadRequestError,
    PayloadTooLargeError,
    RoomNotFoundError,
    StorageFaultError,
    SubmissionNotFoundError,
)
from apcollector.files.schemas import FileCategory
from apcollector.locks import KeyedLock

CREATOR = "10.0.0.1"
ALICE = "10.0.0.2"
BOB = "10.0.0.3"


@pytest.fixture
def room(state):
    return state.room_service.create_room(CREATOR)


@pytest.fixture
def service(state):
    return state.submission_service


class TestUpload:
    """Tests for upload_files."""

    def test_first_upload_creates_submission(self, state, service, room):
        result = service.upload_files(room.id, ALICE, [("a.yaml", b"a"), ("b.apworld", b"b")])

        assert result.created is True
        assert len(result.yaml_files) == 1 and result.yaml_files[0].endswith("_a.yaml")
        assert len(result.apworld_files) == 1 and result.apworld_files[0].endswith("_b.apworld")
        assert state.file_area.exists(room.id, result.yaml_files[0])
        assert state.file_area.exists(room.id, result.apworld_files[0])

    def test_second_upload_appends(self, service, room):
        first = service.upload_files(room.id, ALICE, [("a.yaml", b"a")])
        second = service.upload_files(room.id, ALICE, [("c.yaml", b"c"), ("d.APWORLD", b"d")])

        assert second.created is False
        assert second.yaml_files[0] == first.yaml_files[0]
        assert second.yaml_files[1].endswith("_c.yaml")
        assert second.apworld_files[0].endswith("_d.APWORLD")

    def test_arbitrary_types_go_to_general(self, service, room):
        result = service.upload_files(room.id, ALICE, [("notes.txt", b"n"), ("README", b"r")])

        assert len(result.yaml_files) == 2
        assert result.apworld_files == []

    def test_one_submission_per_participant(self, state, service, room):
        for name in ("a.yaml", "b.yaml", "c.yaml"):
            service.upload_files(room.id, ALICE, [(name, b"x")])
        service.upload_files(room.id, BOB, [("z.yaml", b"z")])

        participants = [s.participant_identity for s in state.submissions.list_by_room(room.id)]
        assert sorted(participants) == [ALICE, BOB]

    def test_empty_upload_rejected(self, service, room):
        with pytest.raises(BadRequestError):
            service.upload_files(room.id, ALICE, [])

    def test_too_many_files_rejected(self, service, room):
        files = [(f"{i}.yaml", b"x") for i in range(11)]
        with pytest.raises(BadRequestError):
            service.upload_files(room.id, ALICE, files)

    def test_oversized_file_rejects_whole_upload(self, state, service, room):
        limit = state.file_area.max_file_size_bytes
        with pytest.raises(PayloadTooLargeError):
            service.upload_files(room.id, ALICE, [("ok.yaml", b"ok"), ("big.bin", b"x" * (limit + 1))])

        assert service.get_submission(room.id, ALICE) is None
        room_dir = state.file_area.room_dir(room.id)
        assert not room_dir.exists() or list(room_dir.iterdir()) == []

    def test_unknown_room(self, service):
        with pytest.raises(RoomNotFoundError):
            service.upload_files("missing", ALICE, [("a.yaml", b"a")])

    def test_failed_record_write_removes_stored_files(self, state, service, room):
        with patch.object(state.submissions, "create", side_effect=StorageFaultError()):
            with pytest.raises(StorageFaultError):
                service.upload_files(room.id, ALICE, [("a.yaml", b"a")])

        assert list(state.file_area.room_dir(room.id).iterdir()) == []

    def test_upload_invalidates_both_bundles(self, state, service, room):
        service.upload_files(room.id, ALICE, [("a.yaml", b"a"), ("b.apworld", b"b")])
        state.archives.get_or_build(room.id, FileCategory.GENERAL)
        state.archives.get_or_build(room.id, FileCategory.APWORLD)

        service.upload_files(room.id, BOB, [("c.yaml", b"c")])

        assert not state.archives.is_cached(room.id, FileCategory.GENERAL)
        assert not state.archives.is_cached(room.id, FileCategory.APWORLD)


class TestConcurrentUploads:
    """Read-modify-write of one submission must not lose files."""

    def test_same_participant_parallel_uploads_keep_every_file(self, service, room):
        names = [f"player{i}.yaml" for i in range(8)]

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(lambda n: service.upload_files(room.id, ALICE, [(n, n.encode())]), names))

        submission = service.get_submission(room.id, ALICE)
        assert len(submission.yaml_files) == 8
        for name in names:
            assert any(ref.endswith("_" + name) for ref in submission.yaml_files)

    def test_different_participants_in_parallel(self, state, service, room):
        identities = [f"10.0.1.{i}" for i in range(6)]

        with ThreadPoolExecutor(max_workers=6) as pool:
            list(pool.map(lambda who: service.upload_files(room.id, who, [("w.apworld", b"w")]), identities))

        submissions = state.submissions.list_by_room(room.id)
        assert len(submissions) == 6
        refs = [ref for s in submissions for ref in s.apworld_files]
        assert len(set(refs)) == 6


class TestRemoveFiles:
    """Tests for remove_files."""

    def test_removes_named_files_only(self, state, service, room):
        uploaded = service.upload_files(room.id, ALICE, [("a.yaml", b"a"), ("b.apworld", b"b")])
        target = uploaded.yaml_files[0]

        result = service.remove_files(room.id, ALICE, [target])

        assert result.yaml_files == []
        assert result.apworld_files == uploaded.apworld_files
        assert not state.file_area.exists(room.id, target)
        assert state.file_area.exists(room.id, uploaded.apworld_files[0])

    def test_empty_submission_is_kept(self, service, room):
        uploaded = service.upload_files(room.id, ALICE, [("a.yaml", b"a")])

        service.remove_files(room.id, ALICE, uploaded.yaml_files)

        submission = service.get_submission(room.id, ALICE)
        assert submission is not None
        assert submission.yaml_files == [] and submission.apworld_files == []

    def test_cannot_remove_another_participants_file(self, state, service, room):
        alice = service.upload_files(room.id, ALICE, [("a.yaml", b"a")])
        service.upload_files(room.id, BOB, [("b.yaml", b"b")])

        service.remove_files(room.id, BOB, alice.yaml_files)

        assert state.file_area.exists(room.id, alice.yaml_files[0])
        assert service.get_submission(room.id, ALICE).yaml_files == alice.yaml_files

    def test_no_names_rejected(self, service, room):
        service.upload_files(room.id, ALICE, [("a.yaml", b"a")])
        with pytest.raises(BadRequestError):
            service.remove_files(room.id, ALICE, [])

    def test_without_submission(self, service, room):
        with pytest.raises(SubmissionNotFoundError):
            service.remove_files(room.id, ALICE, ["1_a.yaml"])

    def test_tolerates_file_already_gone(self, state, service, room):
        uploaded = service.upload_files(room.id, ALICE, [("a.yaml", b"a")])
        state.file_area.remove(room.id, uploaded.yaml_files[0])

        result = service.remove_files(room.id, ALICE, uploaded.yaml_files)

        assert result.yaml_files == []


class TestCancelSubmission:
    """Tests for cancel_submission."""

    def test_cancel_deletes_record_and_files(self, state, service, room):
        uploaded = service.upload_files(room.id, ALICE, [("a.yaml", b"a"), ("b.apworld", b"b")])

        service.cancel_submission(room.id, ALICE)

        assert service.get_submission(room.id, ALICE) is None
        for ref in uploaded.yaml_files + uploaded.apworld_files:
            assert not state.file_area.exists(room.id, ref)

    def test_cancel_twice(self, service, room):
        service.upload_files(room.id, ALICE, [("a.yaml", b"a")])
        service.cancel_submission(room.id, ALICE)

        with pytest.raises(SubmissionNotFoundError):
            service.cancel_submission(room.id, ALICE)

    def test_upload_after_cancel_starts_fresh(self, service, room):
        service.upload_files(room.id, ALICE, [("a.yaml", b"a")])
        service.cancel_submission(room.id, ALICE)

        result = service.upload_files(room.id, ALICE, [("b.yaml", b"b")])

        assert result.created is True
        assert len(result.yaml_files) == 1


class TestKeyedLock:
    """Tests for KeyedLock."""

    def test_registry_is_emptied_after_use(self):
        locks = KeyedLock()
        with locks.hold("a"):
            assert len(locks) == 1
        assert len(locks) == 0

    def test_same_key_is_exclusive(self):
        locks = KeyedLock()
        inside = []
        overlap = threading.Event()

        def worker():
            with locks.hold("room"):
                inside.append(1)
                if len(inside) > 1:
                    overlap.set()
                threading.Event().wait(0.01)
                inside.pop()

        threads = [threading.Thread(target=worker) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert not overlap.is_set()
        assert len(locks) == 0

    def test_different_keys_do_not_block(self):
        locks = KeyedLock()
        with locks.hold("a"):
            acquired = threading.Event()

            def other():
                with locks.hold("b"):
                    acquired.set()

            t = threading.Thread(target=other)
            t.start()
            t.join(timeout=2)

        assert acquired.is_set()
