from pathlib import Path
from typing import Any

import numpy as np
import pytest
import tifffile

from scansim import ScanConfig, run_scan
from scansim.errors import (
    MissingConfigurationError,
    ParameterValidationError,
    TrajectoryParseError,
)

from ._util import N_EVENTS, boundary, common_params


def _config(seed: int | None = 42, **blocks: Any) -> ScanConfig:
    common = blocks.pop("common", common_params())
    return ScanConfig.model_validate(
        {
            "common": common,
            **blocks,
            "settings": {"random_seed": seed, "show_progress": False},
        }
    )


def _random_walk(n_steps: int, per_step: int = 5, seed: int = 0) -> list:
    gen = np.random.default_rng(seed)
    records: list = []
    for step in range(n_steps):
        for x, y, z in gen.normal(0, 0.3, size=(per_step, 3)):
            records.append(("A", round(x, 4), round(y, 4), round(z, 4)))
        records.append(boundary(step, n_steps))
    return records


def test_point_scenario(write_trajectory, tmp_path: Path) -> None:
    path = write_trajectory([("A", 0, 0, 0)] * 3 + [boundary(1, 1)])
    summary = run_scan(_config(point={"prefix": "fcs"}), "point", path)

    out = tmp_path / "fcs_c0.txt"
    assert out.read_text() == f"{3 * N_EVENTS}\n"
    assert summary.n_positions == 3
    assert summary.n_steps == 1
    assert summary.outputs == [out]
    assert not (tmp_path / "fcs_c1.txt").exists()


def test_reproducible(write_trajectory, tmp_path: Path) -> None:
    path = write_trajectory(_random_walk(40))
    raster = {"tiffname": "r", "pixel": 0.2, "width": 4, "height": 3, "deadtime": 0.001}
    config = _config(seed=7, image=raster)

    run_scan(config, "raster", path, tmp_path / "a")
    run_scan(config, "raster", path, tmp_path / "b")

    a = (tmp_path / "a" / "r_c0.tif").read_bytes()
    b = (tmp_path / "b" / "r_c0.tif").read_bytes()
    assert a == b
    with tifffile.TiffFile(tmp_path / "a" / "r_c0.tif") as tif:
        # 40 steps with a 5 step line and 3 lines per frame: 2 full frames + 2 lines
        assert len(tif.pages) == 3
        assert tif.pages[0].shape == (3, 4)


def test_explicit_rng(write_trajectory, tmp_path: Path) -> None:
    path = write_trajectory(_random_walk(10))
    config = _config(seed=None, point={"prefix": "p"})
    run_scan(config, "point", path, tmp_path / "a", rng=np.random.default_rng(5))
    run_scan(config, "point", path, tmp_path / "b", rng=np.random.default_rng(5))
    a = (tmp_path / "a" / "p_c0.txt").read_text()
    assert a == (tmp_path / "b" / "p_c0.txt").read_text()
    assert len(a.splitlines()) == 10


def test_coarse_time_step_rejected(write_trajectory, tmp_path: Path) -> None:
    path = write_trajectory([("A", 0, 0, 0), boundary(1, 1)])
    # tau_D = 1 / (4e-6 * 1e8) = 2.5 ms, less than 10 * 1 ms
    config = _config(common=common_params(w_xy=1.0), point={"prefix": "p"})
    with pytest.raises(ParameterValidationError, match="time step"):
        run_scan(config, "point", path, tmp_path / "out")
    assert not (tmp_path / "out").exists()


def test_missing_mode_block(write_trajectory) -> None:
    path = write_trajectory([boundary(1, 1)])
    with pytest.raises(MissingConfigurationError):
        run_scan(_config(point={"prefix": "p"}), "orbit", path)


def test_malformed_record(write_trajectory) -> None:
    path = write_trajectory([("A", 0, 0, 0), ("B", 1, 2), boundary(1, 1)])
    with pytest.raises(TrajectoryParseError, match=":3:"):
        run_scan(_config(point={"prefix": "p"}), "point", path)


def test_multi_outputs(write_trajectory, tmp_path: Path) -> None:
    path = write_trajectory(_random_walk(5))
    config = _config(multi={"prefix": "m", "nPSFX": 2, "nPSFY": 1, "dx": 5, "dy": 0})
    summary = run_scan(config, "multi", path)
    assert summary.outputs == [tmp_path / "m_000_c0.txt", tmp_path / "m_001_c0.txt"]
    assert len((tmp_path / "index.txt").read_text().splitlines()) == 2
    for out in summary.outputs:
        assert len(out.read_text().splitlines()) == 5


def test_stack_stops_early(write_trajectory, tmp_path: Path) -> None:
    path = write_trajectory(_random_walk(10))
    stack = {
        "tiffname": "s",
        "pixel": 0.2,
        "width": 2,
        "height": 1,
        "top_z": 0.5,
        "bot_z": -0.5,
        "step": 0.5,
    }
    summary = run_scan(_config(stack=stack), "stack", path)
    # two slices of one 2-pixel line each
    assert summary.n_steps == 4
    with tifffile.TiffFile(tmp_path / "s_c0.tif") as tif:
        assert len(tif.pages) == 2


def test_line_and_orbit_carpets(write_trajectory, tmp_path: Path) -> None:
    path = write_trajectory(_random_walk(12))
    config = _config(
        line={"tiffname": "l", "n_columns": 3, "shift": 0.1, "deadtime": 0.001},
        orbital={"tiffname": "o", "radius": 0.3, "period": 0.005},
    )
    run_scan(config, "line", path)
    run_scan(config, "orbit", path)
    assert tifffile.imread(tmp_path / "l_c0.tif").shape == (3, 3)
    assert tifffile.imread(tmp_path / "o_c0.tif").shape == (2, 5)


def test_spim(write_trajectory, tmp_path: Path) -> None:
    path = write_trajectory(_random_walk(6) + [("A", 80, 80, 0), boundary(6, 6)])
    spim = {
        "tiffname": "sheet",
        "NA": 1.0,
        "lambda": 520,
        "waist": 0.5,
        "pixel": 0.25,
        "frame_t": 0.003,
        "width": 8,
        "height": 6,
    }
    summary = run_scan(_config(spim=spim), "spim", path)
    assert summary.outputs == [tmp_path / "sheet.tif"]
    with tifffile.TiffFile(tmp_path / "sheet.tif") as tif:
        # two full frames and the partial frame of the last step
        assert len(tif.pages) == 3
        assert tif.pages[0].shape == (6, 8)


@pytest.mark.parametrize(
    "mode, block, output",
    [
        ("orbit", {"tiffname": "o", "radius": 0.3, "period": 0.0004}, "o_c0.tif"),
        (
            "spim",
            {
                "tiffname": "sheet",
                "NA": 1.0,
                "lambda": 520,
                "waist": 0.5,
                "pixel": 0.25,
                "frame_t": 0.0004,
                "width": 8,
                "height": 6,
            },
            "sheet.tif",
        ),
    ],
)
def test_period_shorter_than_step_rejected(
    write_trajectory, tmp_path: Path, mode: str, block: dict, output: str
) -> None:
    path = write_trajectory([("A", 0, 0, 0), boundary(1, 1)])
    config = _config(**{"orbital" if mode == "orbit" else mode: block})
    with pytest.raises(ParameterValidationError, match="shorter than"):
        run_scan(config, mode, path, tmp_path / "out")  # type: ignore[arg-type]
    assert not (tmp_path / "out").exists()
    assert not (tmp_path / output).exists()
