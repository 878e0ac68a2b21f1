"""End-to-end tests for the inventory pipeline."""

import os
import sys
import time
from dataclasses import replace

import pytest

from markfiles.config import build_config
from markfiles.errors import EmptyInventoryError, LockError
from markfiles.locking import exclusive_run
from markfiles.models import Snapshot
from markfiles.pipeline import check_drift, run_inventory
from markfiles.snapshot_store import read_snapshot, save_snapshot


@pytest.fixture
def make_config(tmp_path):
    def make(root, **kwargs):
        kwargs.setdefault("lock_path", tmp_path / "run.lock")
        kwargs.setdefault("workers", 2)
        return build_config(root, tmp_path / "snapshot.json", **kwargs)
    return make


class TestRunInventory:
    """Test run_inventory without restoration."""

    def test_first_run_writes_snapshot(self, tree, make_config):
        """Test the snapshot lists every visible file."""
        config = make_config(tree)
        result = run_inventory(config)

        stored = read_snapshot(config.output)
        assert set(stored) == {"a.txt", "b.txt", "docs/readme.md", "docs/nested/deep.bin"}
        assert stored == result.snapshot
        assert result.file_count == 4
        assert result.restorations == []

    def test_idempotent(self, tree, make_config):
        """Test two runs over an untouched tree store the same entries."""
        config = make_config(tree)
        run_inventory(config)
        first = read_snapshot(config.output)
        run_inventory(make_config(tree, workers=1))
        assert read_snapshot(config.output) == first

    def test_output_inside_tree_is_not_inventoried(self, tree, tmp_path):
        """Test the snapshot file itself never shows up in the snapshot."""
        config = build_config(tree, tree / "snapshot.json", lock_path=tmp_path / "run.lock")
        run_inventory(config)
        run_inventory(config)
        assert "snapshot.json" not in read_snapshot(config.output)

    def test_empty_directory(self, tmp_path, make_config):
        """Test an empty tree is fatal and writes nothing."""
        empty = tmp_path / "empty"
        empty.mkdir()
        config = make_config(empty)
        with pytest.raises(EmptyInventoryError):
            run_inventory(config)
        assert not config.output.exists()

    def test_only_hidden_files_is_empty(self, tmp_path, make_config):
        """Test a tree with nothing but hidden entries counts as empty."""
        root = tmp_path / "hidden-only"
        (root / ".git").mkdir(parents=True)
        (root / ".git" / "HEAD").write_text("ref", encoding="utf-8")
        with pytest.raises(EmptyInventoryError):
            run_inventory(make_config(root))

    def test_lock_held_elsewhere(self, tree, make_config, tmp_path):
        """Test a held lock aborts the run before any work."""
        config = make_config(tree, lock_timeout=0.2)
        with exclusive_run(tmp_path / "run.lock", timeout=1):
            with pytest.raises(LockError):
                run_inventory(config)
        assert not config.output.exists()


class TestRunInventoryRestore:
    """Test run_inventory with restoration enabled."""

    def test_restores_spurious_mtime_drift(self, tree, make_config, writer):
        """Test unchanged files get their stored mtime back in the snapshot."""
        run_inventory(make_config(tree))
        before = read_snapshot(make_config(tree).output)["a.txt"]

        os.utime(tree / "a.txt", (before.modified_at + 5000, before.modified_at + 5000))
        result = run_inventory(make_config(tree, restore=True), writer=writer)

        restored = {r.path: r for r in result.restorations}
        assert "a.txt" in restored
        assert restored["a.txt"].mtime_changed
        assert restored["a.txt"].old_mtime == before.modified_at
        assert restored["a.txt"].new_mtime == before.modified_at + 5000
        assert any(call[0] == "a.txt" and call[2] == before.modified_at for call in writer.calls)
        assert read_snapshot(result.output)["a.txt"].modified_at == before.modified_at

    def test_content_change_is_kept(self, tree, make_config, writer):
        """Test edited files keep their new timestamps."""
        config = make_config(tree)
        run_inventory(config)
        before = read_snapshot(config.output)["b.txt"]

        (tree / "b.txt").write_text("bravo, edited", encoding="utf-8")
        os.utime(tree / "b.txt", (before.modified_at + 7000, before.modified_at + 7000))
        result = run_inventory(make_config(tree, restore=True), writer=writer)

        assert "b.txt" not in {r.path for r in result.restorations}
        assert all(call[0] != "b.txt" for call in writer.calls)
        assert read_snapshot(config.output)["b.txt"].modified_at == before.modified_at + 7000

    def test_new_and_removed_files(self, tree, make_config, writer):
        """Test removed files drop out and new files are recorded as found."""
        config = make_config(tree)
        run_inventory(config)

        (tree / "b.txt").unlink()
        (tree / "c.txt").write_text("charlie", encoding="utf-8")
        result = run_inventory(make_config(tree, restore=True), writer=writer)

        stored = read_snapshot(config.output)
        assert "b.txt" not in stored
        assert "c.txt" in stored
        assert "c.txt" not in {r.path for r in result.restorations}
        assert result.diff.removed_paths == ["b.txt"]
        assert result.diff.new_paths == ["c.txt"]

    def test_no_prior_snapshot(self, tree, make_config, writer):
        """Test restoring without a baseline restores nothing and still saves."""
        config = make_config(tree, restore=True)
        result = run_inventory(config, writer=writer)
        assert result.restorations == []
        assert writer.calls == []
        assert config.output.exists()

    def test_corrupt_prior_snapshot(self, tree, make_config, writer):
        """Test an unparsable baseline is treated as missing."""
        config = make_config(tree, restore=True)
        config.output.write_text("{ not json", encoding="utf-8")
        result = run_inventory(config, writer=writer)
        assert result.restorations == []
        assert len(read_snapshot(config.output)) == 4

    def test_failed_restore_reported(self, tree, make_config, failing_writer):
        """Test a failing write is reported and the probed value saved."""
        config = make_config(tree)
        run_inventory(config)
        before = read_snapshot(config.output)["a.txt"]

        os.utime(tree / "a.txt", (before.modified_at + 100, before.modified_at + 100))
        result = run_inventory(make_config(tree, restore=True), writer=failing_writer("a.txt"))

        assert result.failed_restores == ["a.txt"]
        assert "a.txt" not in {r.path for r in result.restorations}
        assert read_snapshot(config.output)["a.txt"].modified_at == before.modified_at + 100


class TestCheckDrift:
    """Test the read-only drift check."""

    def test_reports_without_writing(self, tree, make_config):
        """Test check_drift finds drift and leaves the snapshot alone."""
        config = make_config(tree)
        run_inventory(config)
        stored_text = config.output.read_text(encoding="utf-8")
        before = read_snapshot(config.output)["a.txt"]

        os.utime(tree / "a.txt", (before.modified_at + 60, before.modified_at + 60))
        (tree / "new.txt").write_text("new", encoding="utf-8")
        result = check_drift(config)

        assert "a.txt" in {r.path for r in result.drifted}
        assert result.new_paths == ["new.txt"]
        assert config.output.read_text(encoding="utf-8") == stored_text
        assert int((tree / "a.txt").stat().st_mtime) == before.modified_at + 60


class TestRestoreOnDisk:
    """Test restoration through the default OS writer."""

    def test_restores_mtime_on_disk(self, tree, make_config):
        """Test a touched file gets its stored mtime back on disk and in the snapshot."""
        config = make_config(tree)
        run_inventory(config)
        before = read_snapshot(config.output)["a.txt"]

        # Let the inode change time move by at least a second.
        time.sleep(1.1)
        os.utime(tree / "a.txt", (before.modified_at + 5000, before.modified_at + 5000))
        result = run_inventory(make_config(tree, restore=True))

        assert result.failed_restores == []
        assert "a.txt" in {r.path for r in result.restorations}
        assert int((tree / "a.txt").stat().st_mtime) == before.modified_at
        assert read_snapshot(config.output)["a.txt"].modified_at == before.modified_at
        if sys.platform.startswith("linux"):
            assert result.unrestorable_ctime == ["a.txt"]

    def test_out_of_range_prior_mtime(self, tree, make_config):
        """Test a stored mtime the OS can't represent fails that file only."""
        config = make_config(tree)
        run_inventory(config)
        prior = read_snapshot(config.output)
        probed = prior["a.txt"].modified_at
        files = dict(prior.files)
        files["a.txt"] = replace(prior["a.txt"], modified_at=2**64 - 1)
        save_snapshot(config.output, Snapshot(files=files))

        result = run_inventory(make_config(tree, restore=True))

        assert result.failed_restores == ["a.txt"]
        assert int((tree / "a.txt").stat().st_mtime) == probed
        assert read_snapshot(config.output)["a.txt"].modified_at == probed
