"""Streaming reader for particle-simulator trajectory files.

The file starts with a header line ``<time_step> <max_diffusion>`` followed by one
record per line, ``<name> <x> <y> <z>``.  Records with ``x == 100`` are not
molecules: they mark the end of a simulation step, with ``y`` the index of the step
and ``z`` the total number of steps.
"""

from __future__ import annotations

from pathlib import Path
from typing import IO, TYPE_CHECKING, NamedTuple

from scansim._logger import logger
from scansim.errors import TrajectoryParseError

if TYPE_CHECKING:
    from collections.abc import Iterator
    from types import TracebackType
    from typing import Self, TypeAlias

BOUNDARY_SENTINEL = 100.0


class TrajectoryHeader(NamedTuple):
    time_step: float  # s
    max_diffusion: float  # cm^2/s


class Position(NamedTuple):
    molecule: str
    x: float
    y: float
    z: float


class StepBoundary(NamedTuple):
    step: int
    total: float


TrajectoryEvent: TypeAlias = "Position | StepBoundary"


def parse_record(line: str) -> TrajectoryEvent:
    """Parse one trajectory record.

    Raises
    ------
    ValueError
        If the line does not hold a name and three numeric coordinates.
    """
    fields = line.split()
    if len(fields) != 4:
        raise ValueError(f"expected 4 fields, got {len(fields)}: {line.strip()!r}")
    name, *coords = fields
    try:
        x, y, z = (float(c) for c in coords)
    except ValueError:
        raise ValueError(f"non-numeric coordinate in {line.strip()!r}") from None
    if x == BOUNDARY_SENTINEL:
        return StepBoundary(int(y), z)
    return Position(name, x, y, z)


def parse_header(line: str) -> TrajectoryHeader:
    fields = line.split()
    if len(fields) != 2:
        raise ValueError(
            "header must be '<time_step> <max_diffusion>', "
            f"got {len(fields)} fields: {line.strip()!r}"
        )
    try:
        time_step, max_diffusion = (float(f) for f in fields)
    except ValueError:
        raise ValueError(f"non-numeric header {line.strip()!r}") from None
    if time_step <= 0 or max_diffusion <= 0:
        raise ValueError("time step and diffusion coefficient must be positive")
    return TrajectoryHeader(time_step, max_diffusion)


class TrajectoryReader:
    """Single forward pass over a trajectory file.

    The header is read when the file is opened; iterating the reader then yields
    `Position` and `StepBoundary` events in file order.  The reader is not
    restartable.

    Examples
    --------
    >>> with TrajectoryReader("positions.txt") as reader:
    ...     print(reader.header.time_step)
    ...     for event in reader:
    ...         ...
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._file: IO[str] | None = None
        self._lineno = 0
        self._header: TrajectoryHeader | None = None

    def open(self) -> Self:
        self._file = self.path.open()
        logger.info(f"Reading input file {self.path}")
        first = self._next_line()
        if first is None:
            self.close()
            raise TrajectoryParseError("missing header line", self.path, 1)
        try:
            self._header = parse_header(first)
        except ValueError as e:
            self.close()
            raise TrajectoryParseError(str(e), self.path, self._lineno) from None
        return self

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None

    def __enter__(self) -> Self:
        return self.open() if self._file is None else self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    @property
    def header(self) -> TrajectoryHeader:
        if self._header is None:
            raise RuntimeError("TrajectoryReader has not been opened.")
        return self._header

    def _next_line(self) -> str | None:
        assert self._file is not None
        for line in self._file:
            self._lineno += 1
            if line.strip():
                return line
        return None

    def __iter__(self) -> Iterator[TrajectoryEvent]:
        if self._file is None:
            raise RuntimeError("TrajectoryReader has not been opened.")
        while (line := self._next_line()) is not None:
            try:
                yield parse_record(line)
            except ValueError as e:
                raise TrajectoryParseError(str(e), self.path, self._lineno) from None
