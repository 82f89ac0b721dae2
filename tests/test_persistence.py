"""Tests for persistence adapters."""

import pytest

from smart_meter.storage import FilePersistence, InMemoryPersistence


class TestInMemoryPersistence:
    def test_save_and_load(self):
        port = InMemoryPersistence()
        assert port.save("state", "{}")
        assert port.load("state") == "{}"
        assert "state" in port

    def test_missing_key(self):
        assert InMemoryPersistence().load("missing") is None


class TestFilePersistence:
    """Tests for FilePersistence."""

    def test_save_creates_directory(self, tmp_path):
        port = FilePersistence(tmp_path / "state")

        assert port.save("smart_meter_data", '{"a": 1}')

        assert (tmp_path / "state" / "smart_meter_data.json").read_text() == '{"a": 1}'
        assert port.load("smart_meter_data") == '{"a": 1}'

    def test_overwrite_leaves_no_temp_files(self, tmp_path):
        port = FilePersistence(tmp_path)
        port.save("key", "first")
        port.save("key", "second")

        assert port.load("key") == "second"
        assert [p.name for p in tmp_path.iterdir()] == ["key.json"]

    def test_missing_file(self, tmp_path):
        assert FilePersistence(tmp_path).load("nothing") is None

    @pytest.mark.parametrize("key", ["../escape", "a/b", "", "spaces here"])
    def test_invalid_key(self, tmp_path, key):
        with pytest.raises(ValueError):
            FilePersistence(tmp_path).save(key, "{}")

    def test_unwritable_directory(self, tmp_path):
        """A file where the directory should be makes saves fail softly."""
        blocker = tmp_path / "blocked"
        blocker.write_text("")
        port = FilePersistence(blocker)

        assert port.save("key", "{}") is False

    def test_undecodable_file_treated_as_absent(self, tmp_path):
        (tmp_path / "smart_meter_data.json").write_bytes(b"\xff\xfe\x00garbage")

        assert FilePersistence(tmp_path).load("smart_meter_data") is None

    def test_non_ascii_round_trip(self, tmp_path):
        port = FilePersistence(tmp_path)
        port.save("key", '{"site": "Zürich"}')

        assert port.load("key") == '{"site": "Zürich"}'
