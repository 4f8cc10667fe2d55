"""Unit tests for rotwatch.pruner."""
import os

from rotwatch.progress import PruneProgress
from rotwatch.pruner import file_or_symlink_exists, prune
from rotwatch.store import FileRecord
from tests.unit.conftest import write_file


def _record(path, iteration=1):
    return FileRecord(path=str(path), content_hash="0" * 64, mtime_ns=1, iteration=iteration)


class TestFileOrSymlinkExists:
    def test_regular_file(self, tmp_path):
        assert file_or_symlink_exists(write_file(tmp_path / "a", b"a"))

    def test_dangling_symlink_counts_as_present(self, tmp_path):
        link = tmp_path / "dangling"
        os.symlink(str(tmp_path / "nowhere"), link)
        assert file_or_symlink_exists(str(link))

    def test_missing(self, tmp_path):
        assert not file_or_symlink_exists(str(tmp_path / "missing"))


class TestPrune:
    def test_only_absent_matching_records_removed(self, store, tmp_path):
        present = write_file(tmp_path / "media" / "here.jpg", b"x")
        gone = str(tmp_path / "media" / "gone.jpg")
        gone_elsewhere = str(tmp_path / "docs" / "gone.txt")
        for path in (present, gone, gone_elsewhere):
            store.insert(_record(path))

        removed = prune(store, str(tmp_path / "media" / "*"))

        assert removed == 1
        assert store.find_by_path(gone) is None
        assert store.find_by_path(present) is not None
        assert store.find_by_path(gone_elsewhere) is not None

    def test_dangling_symlink_record_is_kept(self, store, tmp_path):
        link = tmp_path / "link"
        os.symlink(str(tmp_path / "nowhere"), link)
        store.insert(_record(link))
        assert prune(store, "*") == 0
        assert store.count() == 1

    def test_iteration_counter_untouched(self, store, tmp_path):
        store.set_iteration(9)
        store.insert(_record(tmp_path / "gone"))
        prune(store, "*")
        assert store.get_iteration() == 9

    def test_progress_reports_every_record(self, store, tmp_path):
        write_file(tmp_path / "kept", b"k")
        store.insert(_record(tmp_path / "kept"))
        store.insert(_record(tmp_path / "gone1"))
        store.insert(_record(tmp_path / "gone2"))
        progress = PruneProgress()

        prune(store, "*", progress=progress)

        assert progress.snapshot() == {"processed": 3, "total": 3, "pruned": 2}

    def test_pattern_is_case_sensitive(self, store, tmp_path):
        gone = str(tmp_path / "Photos" / "gone.jpg")
        store.insert(_record(gone))
        assert prune(store, str(tmp_path / "photos" / "*")) == 0
        assert prune(store, str(tmp_path / "Photos" / "*")) == 1

    def test_empty_store(self, store):
        assert prune(store, "*") == 0
