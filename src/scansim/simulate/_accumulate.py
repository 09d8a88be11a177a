from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from ._psf import detector_noise

if TYPE_CHECKING:
    from collections.abc import Iterable

    import numpy.typing as npt

    from scansim.schema import ChannelId

# 8-bit images saturate rather than wrap
MAX_GRAY = np.iinfo(np.uint8).max


class PhotonAccumulator:
    """Running photon counters of the scan unit being acquired.

    One integer counter is kept per channel and per reference point.  Counters are
    read and reset together by `flush`, or reset without being read by `discard`
    (dead time).

    Parameters
    ----------
    channels : Iterable[ChannelId]
        The enabled channels.
    n_points : int
        Number of reference points observed simultaneously (1 except in multi-point
        mode).
    noise : bool
        Add detector noise to each counter when it is flushed.
    rng : np.random.Generator
        Generator shared by the run, used for the noise draws.
    """

    def __init__(
        self,
        channels: Iterable[ChannelId],
        n_points: int,
        *,
        noise: bool = False,
        rng: np.random.Generator,
    ) -> None:
        self.counts = {cid: np.zeros(n_points, dtype=np.int64) for cid in channels}
        self.noise = noise
        self._rng = rng

    def add(self, channel: ChannelId, photons: npt.ArrayLike) -> None:
        self.counts[channel] += photons

    def add_at(self, channel: ChannelId, index: int, photons: int) -> None:
        """Add `photons` to the counter of a single reference point."""
        self.counts[channel][index] += photons

    def flush(self, channel: ChannelId) -> npt.NDArray[np.int64]:
        """Return the completed counts of `channel` and reset them to zero."""
        out = self.counts[channel].copy()
        if self.noise:
            out += detector_noise(out, self._rng)
        self.counts[channel][:] = 0
        return out

    def discard(self) -> None:
        for counts in self.counts.values():
            counts[:] = 0


class ScanlineBuffer:
    """One 8-bit image row per channel, filled one pixel at a time."""

    def __init__(self, channels: Iterable[ChannelId], width: int) -> None:
        self.rows = {cid: np.zeros(width, dtype=np.uint8) for cid in channels}

    def put(self, channel: ChannelId, column: int, value: int) -> None:
        self.rows[channel][column] = min(int(value), MAX_GRAY)

    def row(self, channel: ChannelId) -> npt.NDArray[np.uint8]:
        return self.rows[channel]
