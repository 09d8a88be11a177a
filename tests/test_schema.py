import json
from pathlib import Path
from typing import get_args

import pytest
from pydantic import ValidationError

import scansim.schema as ss
from scansim.errors import MissingConfigurationError, ParameterValidationError

from ._util import common_params


def test_config_json_schema() -> None:
    """Ensure the ScanConfig model can be cast to JSON schema."""
    assert isinstance(ss.ScanConfig.model_json_schema(), dict)


def test_config_from_file(tmp_path: Path) -> None:
    data = {
        "common": common_params(noise=True),
        "image": {"tiffname": "img", "pixel": 0.05, "width": 64, "height": 64},
        "orbital": {"tiffname": "orb", "radius": 0.5, "period": 0.01},
        "settings": {"random_seed": 3},
    }
    path = tmp_path / "config.json"
    path.write_text(json.dumps(data))

    cfg = ss.ScanConfig.from_file(path)
    assert cfg.common.noise
    assert cfg.settings.random_seed == 3
    assert isinstance(cfg.mode("raster"), ss.RasterScan)
    assert isinstance(cfg.mode("orbit"), ss.OrbitScan)
    assert cfg.mode("raster").type == "raster"
    with pytest.raises(MissingConfigurationError):
        cfg.mode("spim")
    with pytest.raises(ValueError, match="Unknown scan mode"):
        cfg.mode("confocal")  # type: ignore[arg-type]


def test_channel_shorthand() -> None:
    common = ss.CommonParameters.model_validate(common_params())
    assert not common.channel1.on
    assert [cid for cid, _ in common.active_channels()] == [ss.ChannelId.C0]
    assert str(ss.ChannelId.C1) == "c1"
    assert ss.ChannelId.C0.suffix == "_c0"


@pytest.mark.parametrize(
    "channel",
    [
        {"on": True, "molec": ["A", "B"], "bright": [1]},
        {"on": True, "molec": [], "bright": []},
        {"on": True, "molec": ["A"], "bright": [-1]},
    ],
)
def test_channel_invalid(channel: dict) -> None:
    with pytest.raises(ValidationError):
        ss.CommonParameters.model_validate(common_params(channel0=channel))


def test_disabled_channel_is_not_checked() -> None:
    ch = ss.Channel.model_validate({"on": False, "molec": ["A", "B"], "bright": [1]})
    assert not ch.on


def test_missing_channel_block() -> None:
    params = common_params()
    del params["channel1"]
    with pytest.raises(ValidationError):
        ss.CommonParameters.model_validate(params)


@pytest.mark.parametrize("field", ["kappa", "w_xy", "w_z"])
def test_common_positive(field: str) -> None:
    with pytest.raises(ValidationError):
        ss.CommonParameters.model_validate(common_params(**{field: 0}))


def test_time_step_check() -> None:
    common = ss.CommonParameters.model_validate(common_params(w_xy=3.0))
    # tau_D = 9 / (4 * 1e-6 * 1e8) = 22.5 ms
    assert common.diffusion_time(1e-6) == pytest.approx(0.0225)
    common.check_time_step(0.002, 1e-6)
    with pytest.raises(ParameterValidationError):
        common.check_time_step(0.003, 1e-6)
    assert common.sub_events(0.001) == 10
    assert common.sub_events(0.00026) == 3


@pytest.mark.parametrize(
    "bounds",
    [{"top_z": 0, "bot_z": 1, "step": 0.1}, {"top_z": 1, "bot_z": 0, "step": 2}],
)
def test_stack_bounds(bounds: dict) -> None:
    with pytest.raises(ValidationError):
        ss.StackScan(tiffname="s", pixel=0.1, width=4, height=4, **bounds)


def test_stack_slices() -> None:
    stack = ss.StackScan(
        tiffname="s", pixel=0.1, width=4, height=3, top_z=1, bot_z=-1, step=0.25
    )
    assert stack.n_slices == 8
    assert stack.dummy_window(0.001) == 4
    assert stack.total_steps(0.001) == 4 * 3 * 8


def test_dead_time_rounding() -> None:
    line = ss.LineScan(tiffname="l", n_columns=10, shift=0.1, deadtime=0.625)
    # 2.5 steps of dead time round up
    assert line.dummy_window(0.25) == 13


def test_scan_blocks_cover_modes() -> None:
    blocks = get_args(ss.ScanBlock)
    types = [b.model_fields["type"].default for b in blocks]
    assert sorted(types) == sorted(get_args(ss.ModeName))


def test_dead_time_base_is_abstract() -> None:
    from scansim.schema.scan import _DeadTimeScan

    with pytest.raises(TypeError):
        _DeadTimeScan(tiffname="x")  # type: ignore[abstract]


def test_spim_derived() -> None:
    spim = ss.SpimScan.model_validate(
        {
            "tiffname": "sp",
            "NA": 1.0,
            "lambda": 500,
            "waist": 1,
            "pixel": 0.5,
            "frame_t": 0.01,
            "width": 10,
            "height": 4,
        }
    )
    assert spim.jitter_radius == pytest.approx(0.61 * 0.5 / 2)
    assert spim.half_extent == (2.5, 1.0)
    assert spim.frame_steps(0.001) == 10
    with pytest.raises(ValidationError):
        spim.numerical_aperture = 2.0


def test_extra_fields_forbidden() -> None:
    with pytest.raises(ValidationError):
        ss.PointScan(prefix="p", centre_x=1)  # type: ignore[call-arg]


def test_settings_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SCANSIM_RANDOM_SEED", "99")
    monkeypatch.setenv("SCANSIM_SHOW_PROGRESS", "false")
    settings = ss.Settings()
    assert settings.random_seed == 99
    assert not settings.show_progress
    assert settings.rng().random() == ss.Settings(random_seed=99).rng().random()
