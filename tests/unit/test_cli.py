"""Unit tests for the rotwatch CLI (argument parsing and end-to-end commands)."""
import logging
import os

import pytest

from rotwatch.commands import format_duration, format_size, get_version
from rotwatch.main import build_parser, main
from tests.unit.conftest import rewrite_keeping_mtime, write_file


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


class TestParser:
    def test_scan_positionals(self):
        args = build_parser().parse_args(["scan", "/data", "my.db", "skip-realpath"])
        assert args.path == "/data"
        assert args.db == "my.db"
        assert args.mode == "skip-realpath"

    def test_scan_defaults(self):
        args = build_parser().parse_args(["scan"])
        assert args.path is None
        assert args.db is None
        assert args.mode is None
        assert not args.skip_realpath

    def test_unknown_scan_mode_is_usage_error(self, capsys):
        with pytest.raises(SystemExit) as exc:
            build_parser().parse_args(["scan", "/data", "my.db", "bogus"])
        assert exc.value.code == 2

    def test_no_command_prints_help(self, capsys):
        with pytest.raises(SystemExit) as exc:
            main([])
        assert exc.value.code == 0
        assert "rotwatch" in capsys.readouterr().out


class TestPrune:
    def test_missing_arguments_do_nothing(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        main(["prune"])
        main(["prune", "/data/*"])
        assert not (tmp_path / "data.db").exists()

    def test_prune_removes_vanished_records(self, tmp_path, capsys):
        tree = tmp_path / "tree"
        doomed = write_file(tree / "doomed.txt", b"bye")
        write_file(tree / "kept.txt", b"hi")
        db = str(tmp_path / "data.db")
        main(["scan", str(tree), db, "--quiet"])
        os.unlink(doomed)

        main(["prune", os.path.realpath(tree) + "/*", db, "--quiet"])
        assert "Pruned 1 records" in capsys.readouterr().err


class TestScanCommand:
    def test_missing_start_path_exits_2(self, tmp_path):
        with pytest.raises(SystemExit) as exc:
            main(["scan", str(tmp_path / "nope"), str(tmp_path / "data.db"), "--quiet"])
        assert exc.value.code == 2

    def test_scan_status_accept_cycle(self, tmp_path, capsys):
        tree = tmp_path / "tree"
        victim = write_file(tree / "photo.raw", b"pixels")
        write_file(tree / "other.txt", b"other")
        db = str(tmp_path / "data.db")

        main(["scan", str(tree), db, "--quiet"])
        err = capsys.readouterr().err
        assert "Done! Checked the integrity of 2 files" in err
        assert "No possible silent data corruption detected." in err

        main(["status", db])
        out = capsys.readouterr().out
        assert "iteration 1" in out
        assert "2 records" in out

        rewrite_keeping_mtime(victim, b"pixelz")
        main(["scan", str(tree), db, "--quiet"])
        err = capsys.readouterr().err
        assert "1 file(s) may be silently corrupted" in err
        assert os.path.realpath(victim) in err

        main(["accept", victim, db])
        assert "Accepted" in capsys.readouterr().out

        main(["scan", str(tree), db, "--quiet"])
        assert "No possible silent data corruption detected." in capsys.readouterr().err

    def test_skip_realpath_mode(self, tmp_path, capsys):
        tree = tmp_path / "tree"
        target = write_file(tree / "data" / "file.txt", b"content")
        os.symlink(target, tree / "alias.txt")
        db = str(tmp_path / "data.db")

        main(["scan", str(tree), db, "skip-realpath", "--quiet"])
        main(["status", db])
        assert "2 records" in capsys.readouterr().out

    def test_db_from_environment(self, tmp_path, monkeypatch, capsys):
        tree = tmp_path / "tree"
        write_file(tree / "a.txt", b"a")
        db = tmp_path / "env.db"
        monkeypatch.setenv("ROTWATCH_DB_PATH", str(db))

        main(["scan", str(tree), "--quiet"])
        assert db.exists()


class TestAcceptCommand:
    def test_accept_unreadable_path_exits_1(self, tmp_path):
        with pytest.raises(SystemExit) as exc:
            main(["accept", str(tmp_path / "ghost"), str(tmp_path / "data.db")])
        assert exc.value.code == 1

    def test_accept_new_file_adds_it(self, tmp_path, capsys):
        path = write_file(tmp_path / "new.txt", b"n")
        main(["accept", path, str(tmp_path / "data.db")])
        assert "Added" in capsys.readouterr().out


class TestHelpers:
    def test_version_from_source_checkout(self):
        assert get_version() == "1.0.0"

    def test_format_size(self):
        assert format_size(None) == "0 B"
        assert format_size(512) == "512 B"
        assert format_size(1536) == "1.5 KB"

    def test_format_duration(self):
        assert format_duration(59) == "0:59"
        assert format_duration(3725) == "1:02:05"
