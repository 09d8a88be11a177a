from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from pathlib import Path
from typing import Any

import numpy as np
import pytest

from scansim.schema import CommonParameters
from scansim.simulate import ChannelFilter, ScanContext

from ._util import TIME_STEP, Record, common_params


@pytest.fixture(autouse=True)
def _chdir_tmp(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """Run every test from an empty directory, without SCANSIM_ overrides."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("SCANSIM_RANDOM_SEED", raising=False)
    monkeypatch.delenv("SCANSIM_SHOW_PROGRESS", raising=False)
    yield tmp_path


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(1234)


@pytest.fixture
def write_trajectory(tmp_path: Path) -> Callable[..., Path]:
    """Return a helper writing a trajectory file from header values and records."""

    def _write(
        records: Iterable[Record],
        time_step: float = TIME_STEP,
        max_diffusion: float = 1e-6,
        name: str = "positions.txt",
    ) -> Path:
        lines = [f"{time_step} {max_diffusion}"]
        lines += [" ".join(str(f) for f in rec) for rec in records]
        path = tmp_path / name
        path.write_text("\n".join(lines) + "\n")
        return path

    return _write


@pytest.fixture
def make_context(rng: np.random.Generator) -> Callable[..., ScanContext]:
    """Return a helper building a driver context from common parameters."""

    def _make(time_step: float = TIME_STEP, **overrides: Any) -> ScanContext:
        common = CommonParameters.model_validate(common_params(**overrides))
        return ScanContext(
            time_step=time_step,
            n_events=common.sub_events(time_step),
            w_xy=common.w_xy,
            w_z=common.w_z,
            noise=common.noise,
            channels=ChannelFilter(common),
            rng=rng,
        )

    return _make
