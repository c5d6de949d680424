"""Tests for the filename classifier and the room-scoped file area."""
import pytest

from apcollector.errors import BadRequestError, PayloadTooLargeError
from apcollector.files.schemas import FileCategory, classify
from apcollector.files.service import MAX_NAME_BYTES, FileArea, sanitize_filename


@pytest.fixture
def area(tmp_path):
    return FileArea(tmp_path / "rooms", max_file_size_bytes=1024)


class TestClassify:
    """Tests for classify()."""

    @pytest.mark.parametrize("name", ["x.apworld", "x.APWORLD", "My World.ApWorld"])
    def test_apworld_suffix_any_case(self, name):
        assert classify(name) is FileCategory.APWORLD

    @pytest.mark.parametrize("name", ["x.yaml", "x", "x.yml", "x.apworld.zip", "x.txt"])
    def test_everything_else_is_general(self, name):
        assert classify(name) is FileCategory.GENERAL

    def test_general_is_labelled_yaml(self):
        """The general bucket keeps its historical wire label."""
        assert FileCategory.GENERAL.value == "yaml"
        assert FileCategory.APWORLD.value == "apworld"

    def test_directory_components_are_ignored(self):
        assert classify("worlds/zelda.apworld") is FileCategory.APWORLD
        assert classify("worlds.apworld/readme") is FileCategory.GENERAL


class TestSanitizeFilename:
    """Tests for sanitize_filename()."""

    def test_plain_name_unchanged(self):
        assert sanitize_filename("Player1.yaml") == "Player1.yaml"

    def test_strips_directories(self):
        assert sanitize_filename("../../etc/passwd") == "passwd"
        assert sanitize_filename("C:\\temp\\a.yaml") == "a.yaml"

    def test_replaces_unsafe_characters(self):
        assert sanitize_filename("a:b*c?.yaml") == "a_b_c_.yaml"

    @pytest.mark.parametrize("name", ["", ".", "..", "/"])
    def test_empty_names_fall_back(self, name):
        assert sanitize_filename(name) == "unnamed"

    def test_long_name_is_shortened_keeping_extension(self):
        name = sanitize_filename("p" * 250 + ".apworld")

        assert len(name.encode("utf-8")) <= MAX_NAME_BYTES
        assert name.endswith(".apworld")
        assert classify(name) is FileCategory.APWORLD

    def test_long_unicode_name_fits_byte_budget(self):
        name = sanitize_filename("\u00e9" * 150 + ".yaml")

        assert len(name.encode("utf-8")) <= MAX_NAME_BYTES
        assert name.endswith(".yaml")
        assert set(name[: -len(".yaml")]) == {"\u00e9"}


class TestFileArea:
    """Tests for FileArea."""

    def test_store_writes_bytes_under_room(self, area):
        stored = area.store("room-1", "a.yaml", b"name: a")

        assert stored.endswith("_a.yaml")
        assert stored.split("_", 1)[0].isdigit()
        assert area.path_for("room-1", stored).read_bytes() == b"name: a"

    def test_store_same_name_twice_gives_distinct_refs(self, area):
        first = area.store("room-1", "a.yaml", b"1")
        second = area.store("room-1", "a.yaml", b"2")

        assert first != second
        assert area.path_for("room-1", first).read_bytes() == b"1"
        assert area.path_for("room-1", second).read_bytes() == b"2"

    def test_store_long_name(self, area):
        stored = area.store("room-1", "p" * 245 + ".yaml", b"x")

        assert stored.endswith(".yaml")
        assert area.path_for("room-1", stored).read_bytes() == b"x"

    def test_oversized_file_rejected_without_write(self, area):
        with pytest.raises(PayloadTooLargeError):
            area.store("room-1", "big.bin", b"x" * 1025)

        assert not area.room_dir("room-1").exists()

    def test_file_at_limit_is_accepted(self, area):
        stored = area.store("room-1", "edge.bin", b"x" * 1024)
        assert area.exists("room-1", stored)

    def test_remove_is_idempotent(self, area):
        stored = area.store("room-1", "a.yaml", b"a")

        assert area.remove("room-1", stored) is True
        assert area.remove("room-1", stored) is False
        assert not area.exists("room-1", stored)

    def test_remove_refuses_path_traversal(self, area, tmp_path):
        outside = tmp_path / "rooms" / "secret.txt"
        outside.write_text("keep")

        assert area.remove("room-1", "../secret.txt") is False
        assert outside.exists()

    def test_remove_many_counts_deleted(self, area):
        a = area.store("room-1", "a.yaml", b"a")
        b = area.store("room-1", "b.yaml", b"b")

        assert area.remove_many("room-1", [a, b, "missing.yaml"]) == 2

    def test_remove_room_area_twice(self, area):
        area.store("room-1", "a.yaml", b"a")

        assert area.remove_room_area("room-1") is True
        assert area.remove_room_area("room-1") is True
        assert not area.room_dir("room-1").exists()

    def test_rooms_are_isolated(self, area):
        stored = area.store("room-1", "a.yaml", b"a")
        area.remove_room_area("room-2")

        assert area.exists("room-1", stored)

    def test_invalid_room_id_rejected(self, area):
        with pytest.raises(BadRequestError):
            area.room_dir("../escape")
