from pathlib import Path

import pytest

from scansim.errors import TrajectoryParseError
from scansim.simulate import Position, StepBoundary, TrajectoryReader, parse_record

from ._util import boundary


def test_parse_record() -> None:
    assert parse_record("A 0.1 -0.2 3") == Position("A", 0.1, -0.2, 3.0)
    step = parse_record("X 100 7 400")
    assert step == StepBoundary(7, 400.0)
    assert isinstance(step, StepBoundary)


@pytest.mark.parametrize("line", ["A 1 2", "A 1 2 3 4", "A 1 two 3"])
def test_parse_record_malformed(line: str) -> None:
    with pytest.raises(ValueError):
        parse_record(line)


def test_reader(write_trajectory) -> None:
    path = write_trajectory([("A", 0, 0, 0), ("B", 1, 2, 3), boundary(1, 2)])
    with TrajectoryReader(path) as reader:
        assert reader.header.time_step == pytest.approx(0.001)
        assert reader.header.max_diffusion == pytest.approx(1e-6)
        events = list(reader)
    assert events == [
        Position("A", 0, 0, 0),
        Position("B", 1, 2, 3),
        StepBoundary(1, 2.0),
    ]


def test_reader_skips_blank_lines(tmp_path: Path) -> None:
    path = tmp_path / "t.txt"
    path.write_text("0.001 1e-6\n\nA 0 0 0\n   \nX 100 1 1\n")
    with TrajectoryReader(path) as reader:
        assert len(list(reader)) == 2


def test_reader_reports_line_number(tmp_path: Path) -> None:
    path = tmp_path / "t.txt"
    path.write_text("0.001 1e-6\nA 0 0 0\nA 0 0\n")
    with TrajectoryReader(path) as reader:
        with pytest.raises(TrajectoryParseError, match=":3:") as exc_info:
            list(reader)
    assert exc_info.value.lineno == 3
    assert exc_info.value.path == path


@pytest.mark.parametrize("header", ["", "0.001\n", "0.001 abc\n", "-1 1e-6\n"])
def test_reader_bad_header(tmp_path: Path, header: str) -> None:
    path = tmp_path / "t.txt"
    path.write_text(header)
    with pytest.raises(TrajectoryParseError):
        TrajectoryReader(path).open()


def test_reader_missing_file(tmp_path: Path) -> None:
    with pytest.raises(OSError):
        TrajectoryReader(tmp_path / "nope.txt").open()


def test_reader_requires_open(tmp_path: Path) -> None:
    reader = TrajectoryReader(tmp_path / "t.txt")
    with pytest.raises(RuntimeError):
        reader.header  # noqa: B018
