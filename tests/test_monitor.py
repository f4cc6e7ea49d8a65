import asyncio
import os

import pytest

from lansync.entry import FileEntry
from lansync.monitor import FileMonitor


def _write(path, text="data", mtime=1_000_000):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    os.utime(path, (mtime, mtime))
    return path


class Recorder:
    def __init__(self):
        self.changed = []
        self.removed = []

    def on_changed(self, entry):
        self.changed.append(entry)

    def on_removed(self, relative):
        self.removed.append(relative)


@pytest.fixture
def recorder():
    return Recorder()


def _monitor(root, recorder):
    return FileMonitor(root, recorder.on_changed, recorder.on_removed)


def test_hidden_files_are_ignored(tmp_path, recorder):
    _write(tmp_path / ".secretfile")
    _write(tmp_path / "visible.md")
    monitor = _monitor(tmp_path, recorder)
    monitor.start()
    assert [e.path for e in monitor.current_files()] == ["visible.md"]


def test_rescan_without_changes_reports_nothing(tmp_path, recorder):
    _write(tmp_path / "a.txt")
    monitor = _monitor(tmp_path, recorder)
    monitor.start()
    recorder.changed.clear()
    monitor.rescan()
    assert recorder.changed == []
    assert recorder.removed == []


def test_rescan_reports_new_version(tmp_path, recorder):
    f = _write(tmp_path / "a.txt", mtime=1_000_000)
    monitor = _monitor(tmp_path, recorder)
    monitor.start()
    recorder.changed.clear()
    os.utime(f, (1_000_050, 1_000_050))
    monitor.rescan()
    assert [(e.path, e.version) for e in recorder.changed] == [("a.txt", 1_000_050)]


def test_rescan_reports_removal(tmp_path, recorder):
    f = _write(tmp_path / "dir" / "gone.txt")
    _write(tmp_path / "kept.txt")
    monitor = _monitor(tmp_path, recorder)
    monitor.start()
    f.unlink()
    monitor.rescan()
    assert recorder.removed == ["dir/gone.txt"]
    assert [e.path for e in monitor.current_files()] == ["kept.txt"]


def test_file_changed_on_missing_file_removes_it(tmp_path, recorder):
    f = _write(tmp_path / "x.bin")
    monitor = _monitor(tmp_path, recorder)
    monitor.start()
    f.unlink()
    monitor.file_changed(str(f))
    assert recorder.removed == ["x.bin"]
    assert monitor.current_files() == []


def test_file_changed_always_reports_existing_file(tmp_path, recorder):
    f = _write(tmp_path / "x.bin", mtime=1_000_000)
    monitor = _monitor(tmp_path, recorder)
    monitor.start()
    recorder.changed.clear()
    monitor.file_changed(str(f))
    assert [(e.path, e.version) for e in recorder.changed] == [("x.bin", 1_000_000)]


def test_directory_changed_picks_up_new_file(tmp_path, recorder):
    monitor = _monitor(tmp_path, recorder)
    monitor.start()
    assert monitor.current_files() == []
    _write(tmp_path / "new" / "n.txt")
    monitor.directory_changed(str(tmp_path / "new"))
    assert [e.path for e in recorder.changed] == ["new/n.txt"]


def test_watched_paths_cover_files_and_parent_dirs(tmp_path, recorder):
    _write(tmp_path / "a" / "b" / "c.txt")
    _write(tmp_path / "top.txt")
    monitor = _monitor(tmp_path, recorder)
    monitor.start()
    root = os.path.abspath(str(tmp_path))
    assert monitor.watched_paths() == {
        os.path.join(root, "a", "b", "c.txt"),
        os.path.join(root, "top.txt"),
        os.path.join(root, "a", "b"),
        os.path.join(root, "a"),
        root,
    }


def test_monitor_without_callbacks_tracks_files(tmp_path):
    _write(tmp_path / "q.txt", mtime=1_000_000)
    monitor = FileMonitor(tmp_path)
    monitor.start()
    assert [e.version for e in monitor.current_files()] == [1_000_000]


@pytest.mark.asyncio
async def test_run_detects_new_file(tmp_path):
    _write(tmp_path / "first.txt")
    seen = asyncio.Event()
    paths = []

    def on_changed(entry):
        paths.append(entry.path)
        if entry.path == "second.txt":
            seen.set()

    monitor = FileMonitor(tmp_path, on_changed)
    monitor.start()
    task = asyncio.create_task(monitor.run(0.01))
    try:
        await asyncio.sleep(0.05)
        (tmp_path / "second.txt").write_text("hello")
        await asyncio.wait_for(seen.wait(), timeout=5)
    finally:
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
    assert "second.txt" in paths
    assert sorted(e.path for e in monitor.current_files()) == ["first.txt", "second.txt"]