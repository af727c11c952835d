"""Tests for the marker protocol of MarkedStream."""

from __future__ import annotations

import gc
import io
from pathlib import Path

import pytest

from file_marker.config import MarkerConfig
from file_marker.errors import (
    ClosedHandle,
    InvalidMarkerName,
    MarkerIOError,
    PositionUnavailable,
    ReservedName,
    SeekFailure,
    UnknownMarker,
)
from file_marker.position import PositionToken
from file_marker.registry import MarkerRegistry
from file_marker.stream import MarkedStream


@pytest.fixture
def stream(sample_file: Path, registry: MarkerRegistry, marker_config: MarkerConfig):
    with MarkedStream(sample_file, registry=registry, config=marker_config) as handle:
        yield handle


def test_end_to_end_scenario(
    sample_file: Path, tmp_path: Path, registry: MarkerRegistry, marker_config: MarkerConfig
) -> None:
    saved = tmp_path / "sample.markers"
    with MarkedStream(sample_file, registry=registry, config=marker_config) as stream:
        assert stream.readline() == "one\n"
        stream.set_marker("line2")
        assert stream.readline() == "two\n"
        stream.goto_marker("line2")
        assert stream.readline() == "two\n"
        stream.save_markers(saved)

    with MarkedStream(sample_file, registry=registry, config=marker_config) as fresh:
        fresh.load_markers(saved)
        fresh.goto_marker("line2")
        assert fresh.readline() == "two\n"


def test_open_seeds_last_with_initial_position(stream: MarkedStream) -> None:
    assert stream.markers() == ["LAST"]
    assert stream.marker_position("LAST") == stream.current_position()


def test_last_is_one_step_undo(stream: MarkedStream) -> None:
    stream.readline()
    stream.set_marker("line2")
    stream.readline()
    stream.readline()
    before_jump = stream.current_position()

    stream.goto_marker("line2")
    assert stream.readline() == "two\n"
    stream.goto_marker("LAST")
    assert stream.current_position() == before_jump
    assert stream.readline() == ""


def test_double_last_walks_back_to_jump_target(stream: MarkedStream) -> None:
    stream.set_marker("one")
    stream.readline()
    stream.readline()

    stream.goto_marker("one")
    stream.goto_marker("LAST")
    assert stream.readline() == "three\n"
    stream.goto_marker("one")
    stream.goto_marker("LAST")
    stream.goto_marker("LAST")
    assert stream.readline() == "one\n"


def test_set_marker_overwrites_existing_name(stream: MarkedStream) -> None:
    stream.set_marker("spot")
    stream.readline()
    stream.set_marker("spot")
    stream.readline()
    stream.goto_marker("spot")
    assert stream.readline() == "two\n"


def test_markers_lists_every_name_sorted(stream: MarkedStream) -> None:
    stream.set_marker("zeta")
    stream.set_marker("alpha")
    assert stream.markers() == ["LAST", "alpha", "zeta"]
    assert stream.has_marker("alpha")
    assert not stream.has_marker("beta")


def test_set_last_is_rejected_and_table_unchanged(stream: MarkedStream) -> None:
    stream.readline()
    original = stream.marker_position("LAST")
    with pytest.raises(ReservedName):
        stream.set_marker("LAST")
    assert stream.marker_position("LAST") == original
    assert stream.markers() == ["LAST"]


@pytest.mark.parametrize("name", ["", "a\nb"])
def test_set_marker_rejects_unpersistable_names(stream: MarkedStream, name: str) -> None:
    with pytest.raises(InvalidMarkerName):
        stream.set_marker(name)
    assert stream.markers() == ["LAST"]


def test_unknown_marker_changes_nothing(stream: MarkedStream) -> None:
    stream.readline()
    position = stream.current_position()
    last = stream.marker_position("LAST")
    with pytest.raises(UnknownMarker, match="nope"):
        stream.goto_marker("nope")
    assert stream.current_position() == position
    assert stream.marker_position("LAST") == last
    assert stream.readline() == "two\n"


def test_unknown_marker_is_a_key_error(stream: MarkedStream) -> None:
    with pytest.raises(KeyError):
        stream.marker_position("nope")


def test_failed_jump_keeps_position_and_last(
    stream: MarkedStream, registry: MarkerRegistry
) -> None:
    stream.readline()
    position = stream.current_position()
    last = stream.marker_position("LAST")
    # A cookie too large for the platform's off_t cannot be honoured.
    registry.table(stream.identity)["corrupt"] = PositionToken(b"\xff" * 40)
    with pytest.raises(SeekFailure):
        stream.goto_marker("corrupt")
    assert stream.current_position() == position
    assert stream.marker_position("LAST") == last


def test_restore_round_trips_current_position(stream: MarkedStream) -> None:
    stream.readline()
    token = stream.current_position()
    stream.readline()
    stream.restore(token)
    assert stream.readline() == "two\n"


def test_iteration_keeps_positions_available(stream: MarkedStream) -> None:
    seen = []
    for line in stream:
        seen.append(line)
        if line == "two\n":
            stream.set_marker("after-two")
    assert seen == ["one\n", "two\n", "three\n"]
    stream.goto_marker("after-two")
    assert stream.readline() == "three\n"


def test_binary_mode_markers(sample_file: Path, registry: MarkerRegistry, marker_config: MarkerConfig) -> None:
    with MarkedStream(sample_file, "rb", registry=registry, config=marker_config) as stream:
        assert stream.read(4) == b"one\n"
        stream.set_marker("two")
        assert stream.current_position() == PositionToken(b"\x04")
        stream.read()
        stream.goto_marker("two")
        assert stream.readline() == b"two\n"


def test_multibyte_text_positions(tmp_path: Path, registry: MarkerRegistry, marker_config: MarkerConfig) -> None:
    path = tmp_path / "utf8.txt"
    path.write_text("ünï\ncödé\nend\n", encoding="utf-8")
    with MarkedStream(path, encoding="utf-8", registry=registry, config=marker_config) as stream:
        stream.readline()
        stream.set_marker("second")
        stream.readline()
        stream.goto_marker("second")
        assert stream.readline() == "cödé\n"


def test_operations_on_closed_stream_raise(stream: MarkedStream) -> None:
    stream.close()
    assert stream.closed
    assert stream.identity is None
    with pytest.raises(ClosedHandle):
        stream.set_marker("a")
    with pytest.raises(ClosedHandle):
        stream.goto_marker("LAST")
    with pytest.raises(ClosedHandle):
        stream.markers()
    with pytest.raises(ClosedHandle):
        stream.current_position()
    with pytest.raises(ClosedHandle):
        stream.readline()


def test_unopened_stream_is_closed(registry: MarkerRegistry, marker_config: MarkerConfig) -> None:
    stream = MarkedStream(registry=registry, config=marker_config)
    assert stream.closed
    with pytest.raises(ClosedHandle):
        stream.set_marker("a")
    stream.close()


def test_close_drops_marker_table(sample_file: Path, registry: MarkerRegistry, marker_config: MarkerConfig) -> None:
    stream = MarkedStream(sample_file, registry=registry, config=marker_config)
    identity = stream.identity
    stream.set_marker("a")
    stream.close()
    stream.close()
    assert identity not in registry
    assert registry.live_streams() == []


def test_garbage_collection_drops_marker_table(
    sample_file: Path, registry: MarkerRegistry, marker_config: MarkerConfig
) -> None:
    stream = MarkedStream(sample_file, registry=registry, config=marker_config)
    stream.set_marker("a")
    identity = stream.identity
    stream._handle.close()
    del stream
    gc.collect()
    assert identity not in registry
    assert len(registry) == 0


def test_open_failure_creates_no_table(tmp_path: Path, registry: MarkerRegistry, marker_config: MarkerConfig) -> None:
    with pytest.raises(MarkerIOError):
        MarkedStream(tmp_path / "missing.txt", registry=registry, config=marker_config)
    assert len(registry) == 0


def test_reopen_starts_fresh_table(
    sample_file: Path, tmp_path: Path, registry: MarkerRegistry, marker_config: MarkerConfig
) -> None:
    other = tmp_path / "other.txt"
    other.write_text("alpha\n", encoding="utf-8")
    stream = MarkedStream(sample_file, registry=registry, config=marker_config)
    stream.readline()
    stream.set_marker("old")
    stream.open(other)
    assert stream.markers() == ["LAST"]
    assert stream.readline() == "alpha\n"
    assert len(registry) == 1
    stream.close()


def test_failed_reopen_leaves_stream_closed(
    sample_file: Path, tmp_path: Path, registry: MarkerRegistry, marker_config: MarkerConfig
) -> None:
    stream = MarkedStream(sample_file, registry=registry, config=marker_config)
    with pytest.raises(MarkerIOError):
        stream.open(tmp_path / "missing.txt")
    assert stream.closed
    assert len(registry) == 0


def test_streams_have_independent_tables(
    sample_file: Path, registry: MarkerRegistry, marker_config: MarkerConfig
) -> None:
    with MarkedStream(sample_file, registry=registry, config=marker_config) as first, MarkedStream(
        sample_file, registry=registry, config=marker_config
    ) as second:
        first.set_marker("only-first")
        assert second.markers() == ["LAST"]
        assert first.identity != second.identity


def test_adopt_existing_file_object(registry: MarkerRegistry, marker_config: MarkerConfig) -> None:
    buffer = io.StringIO("one\ntwo\n")
    stream = MarkedStream.adopt(buffer, closefd=False, registry=registry, config=marker_config)
    stream.readline()
    stream.set_marker("two")
    stream.readline()
    stream.goto_marker("two")
    assert stream.readline() == "two\n"
    stream.close()
    assert not buffer.closed
    assert len(registry) == 0


class _Unseekable(io.RawIOBase):
    def readable(self) -> bool:
        return True

    def tell(self) -> int:
        raise OSError("illegal seek")


def test_adopting_unseekable_stream_reports_position_unavailable(
    registry: MarkerRegistry, marker_config: MarkerConfig
) -> None:
    with pytest.raises(PositionUnavailable):
        MarkedStream.adopt(_Unseekable(), registry=registry, config=marker_config)
    assert len(registry) == 0


def test_default_registry_is_used_without_explicit_one(sample_file: Path, marker_config: MarkerConfig) -> None:
    from file_marker.registry import default_registry

    with MarkedStream(sample_file, config=marker_config) as stream:
        assert stream.registry is default_registry()
        assert stream.identity in default_registry()


def test_restore_past_end_of_file_reads_nothing(stream: MarkedStream) -> None:
    stream.restore(PositionToken.from_cookie(1000))
    assert stream.readline() == ""


def test_unencodable_marker_keeps_saved_file(
    sample_file: Path, tmp_path: Path, registry: MarkerRegistry
) -> None:
    saved = tmp_path / "sample.markers"
    saved.write_text("old\n01\n", encoding="utf-8")
    config = MarkerConfig(persistence_encoding="ascii", fork_safe=False)
    with MarkedStream(sample_file, registry=registry, config=config) as stream:
        stream.set_marker("café")
        with pytest.raises(InvalidMarkerName):
            stream.save_markers(saved)
    assert saved.read_text(encoding="utf-8") == "old\n01\n"


class _FlakyTell(io.StringIO):
    failing = False

    def tell(self) -> int:
        if self.failing:
            raise OSError("position lost")
        return super().tell()


@pytest.fixture
def flaky(registry: MarkerRegistry, marker_config: MarkerConfig):
    buffer = _FlakyTell("one\ntwo\nthree\n")
    with MarkedStream.adopt(buffer, registry=registry, config=marker_config) as handle:
        yield buffer, handle


def test_set_marker_without_position_changes_nothing(flaky) -> None:
    buffer, stream = flaky
    stream.set_marker("top")
    stream.readline()
    buffer.failing = True
    with pytest.raises(PositionUnavailable):
        stream.set_marker("second")
    assert stream.markers() == ["LAST", "top"]


def test_goto_marker_without_position_keeps_last(flaky, registry: MarkerRegistry) -> None:
    buffer, stream = flaky
    stream.readline()
    stream.set_marker("line2")
    stream.readline()
    table = registry.table(stream.identity)
    snapshot = dict(table)
    buffer.failing = True
    with pytest.raises(PositionUnavailable):
        stream.goto_marker("line2")
    assert table == snapshot
    buffer.failing = False
    assert stream.readline() == "three\n"
