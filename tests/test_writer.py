import pytest

from quire.errors import WriteError
from quire.writer import INCOMPLETE_MARKER, OutputWriter


def test_write_all_creates_tree_and_reports_sorted(tmp_path):
    writer = OutputWriter(tmp_path / "out", workers=3)
    report = writer.write_all({"b/index.html": "B", "index.html": "home", "a.xml": "<a/>"})
    assert report.ok
    assert report.written == ["a.xml", "b/index.html", "index.html"]
    assert (tmp_path / "out" / "b" / "index.html").read_bytes() == b"B"


def test_unchanged_files_are_not_rewritten(tmp_path):
    writer = OutputWriter(tmp_path)
    writer.write_all({"index.html": "café"})
    mtime = (tmp_path / "index.html").stat().st_mtime_ns

    report = writer.write_all({"index.html": "café"})
    assert report.written == []
    assert report.unchanged == ["index.html"]
    assert (tmp_path / "index.html").stat().st_mtime_ns == mtime
    assert (tmp_path / "index.html").read_bytes() == "café".encode("utf-8")


@pytest.mark.parametrize("bad", ["/etc/passwd", "../escape.html", ""])
def test_target_for_rejects_paths_outside_root(tmp_path, bad):
    with pytest.raises(ValueError):
        OutputWriter(tmp_path).target_for(bad)


def test_failures_are_collected_per_file(tmp_path, monkeypatch):
    writer = OutputWriter(tmp_path, workers=2)
    original = OutputWriter.write_one

    def flaky(self, output_path, text):
        if output_path == "b.html":
            raise PermissionError("read-only")
        return original(self, output_path, text)

    monkeypatch.setattr(OutputWriter, "write_one", flaky)
    report = writer.write_all({"a.html": "a", "b.html": "b", "c.html": "c"})

    assert not report.ok
    assert report.written == ["a.html", "c.html"]
    assert len(report.errors) == 1
    error = report.errors[0]
    assert isinstance(error, WriteError)
    assert error.output_path == "b.html"
    assert isinstance(error.original_error, PermissionError)
    assert not error.fatal


def test_remove_stale_keeps_outputs_and_marker(tmp_path):
    writer = OutputWriter(tmp_path)
    writer.write_all({"keep/index.html": "k"})
    (tmp_path / "gone").mkdir()
    (tmp_path / "gone" / "old.html").write_text("old")
    (tmp_path / INCOMPLETE_MARKER).write_text("x")

    report = writer.write_all({"keep/index.html": "k"})
    writer.remove_stale(["keep/index.html"], report)

    assert report.removed == ["gone/old.html"]
    assert not (tmp_path / "gone").exists()
    assert (tmp_path / "keep" / "index.html").exists()
    assert (tmp_path / INCOMPLETE_MARKER).exists()


def test_incomplete_marker_lifecycle(tmp_path):
    writer = OutputWriter(tmp_path / "site")
    assert not writer.is_incomplete()
    marker = writer.mark_incomplete("build aborted")
    assert marker.read_text(encoding="utf-8") == "build aborted\n"
    assert writer.is_incomplete()
    writer.clear_incomplete()
    assert not writer.is_incomplete()
    writer.clear_incomplete()
