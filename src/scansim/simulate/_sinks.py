"""Output sinks: text samples and 8-bit multi-page TIFF images."""

from __future__ import annotations

import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import IO, TYPE_CHECKING, Protocol

import numpy as np
import tifffile

from scansim._logger import logger

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import TracebackType
    from typing import Self

    import numpy.typing as npt


class _Sink(ABC):
    @abstractmethod
    def close(self) -> None:
        """Flush pending data and close the file."""

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()


class ScalarSink(Protocol):
    def append_scalar(self, value: int) -> None: ...


class ImageSink(Protocol):
    def write_scanline(self, buffer: npt.ArrayLike, row: int) -> None: ...
    def finish_frame(self) -> None: ...


class TextSink(_Sink):
    """One integer per line, one line per completed sample."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._file: IO[str] | None = self.path.open("w")
        logger.info(f"Writing output file {self.path}")

    def append_scalar(self, value: int) -> None:
        if self._file is None:
            raise ValueError("sink is closed")
        self._file.write(f"{int(value)}\n")

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None


class FrameSink(_Sink):
    """Multi-page TIFF, one page per frame, assembled one scanline at a time.

    Scanlines are collected into the current frame and the page is written by
    `finish_frame`.  A frame that is incomplete when the sink is closed is written
    with its missing rows left at zero.
    """

    def __init__(self, path: str | Path, width: int, height: int) -> None:
        self.path = Path(path)
        self._frame = np.zeros((height, width), dtype=np.uint8)
        self._dirty = False
        self.n_frames = 0
        self._tif: tifffile.TiffWriter | None = tifffile.TiffWriter(self.path)
        logger.info(f"Writing output file {self.path}")

    @property
    def shape(self) -> tuple[int, int]:
        return self._frame.shape  # type: ignore[return-value]

    def write_scanline(self, buffer: npt.ArrayLike, row: int) -> None:
        self._frame[row] = buffer
        self._dirty = True

    def write_frame(self, frame: npt.ArrayLike) -> None:
        """Replace the whole current frame (for area detectors)."""
        self._frame[:] = frame
        self._dirty = True

    def finish_frame(self) -> None:
        """Write the current frame as a new page and start an empty one."""
        if self._tif is None:
            raise ValueError("sink is closed")
        self._tif.write(
            self._frame, photometric="minisblack", contiguous=False, metadata=None
        )
        self._frame[:] = 0
        self._dirty = False
        self.n_frames += 1

    def close(self) -> None:
        if self._tif is None:
            return
        try:
            if self._dirty:
                self.finish_frame()
        finally:
            self._tif.close()
            self._tif = None


class CarpetSink(_Sink):
    """Single-page TIFF growing by one row per completed line ("carpet").

    The page height is only known once the input is exhausted, so completed rows
    are spooled to an anonymous temporary file and copied into the TIFF page when
    the sink is closed.
    """

    description = "carpet"

    def __init__(self, path: str | Path, width: int) -> None:
        self.path = Path(path)
        self.width = width
        self._n_rows = 0
        self._spool: IO[bytes] | None = tempfile.TemporaryFile()
        self._tif: tifffile.TiffWriter | None = tifffile.TiffWriter(self.path)
        logger.info(f"Writing output file {self.path}")

    @property
    def n_rows(self) -> int:
        return self._n_rows

    def write_scanline(self, buffer: npt.ArrayLike, row: int) -> None:
        if self._spool is None:
            raise ValueError("sink is closed")
        if row != self._n_rows:
            raise ValueError(f"expected row {self._n_rows}, got {row}")
        line = np.asarray(buffer, dtype=np.uint8)
        if line.shape != (self.width,):
            raise ValueError(f"expected {self.width} pixels, got {line.shape}")
        self._spool.write(line.tobytes())
        self._n_rows += 1

    def finish_frame(self) -> None:
        # a carpet is a single open-ended page
        pass

    def close(self) -> None:
        if self._tif is None or self._spool is None:
            return
        try:
            if self._n_rows:
                self._spool.flush()
                rows = np.memmap(
                    self._spool,
                    dtype=np.uint8,
                    mode="r",
                    shape=(self._n_rows, self.width),
                )
                self._tif.write(
                    rows,
                    photometric="minisblack",
                    description=self.description,
                    metadata=None,
                )
                del rows
        finally:
            self._tif.close()
            self._tif = None
            self._spool.close()
            self._spool = None


def write_index(path: str | Path, centers: Sequence[tuple[float, float]]) -> None:
    """Write the identifier and lateral position of every multi-point volume."""
    with open(path, "w") as fh:
        for idx, (x, y) in enumerate(centers):
            fh.write(f"{idx:03d} \t {x:0.3f} \t {y:0.3f}\n")
    logger.info(f"Wrote {len(centers)} observation volumes to {path}")
