import random
from typing import ClassVar

import numpy as np
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ._base_model import ScanBaseModel


class Settings(ScanBaseModel, BaseSettings):
    random_seed: int | None = Field(
        default_factory=lambda: random.randint(0, 2**32 - 1),
        description=(
            "Seed for the random generator shared by every stochastic draw of a run "
            "(photon detection, detector noise and SPIM jitter). Two runs with the "
            "same seed and the same trajectory produce identical output. If `None`, "
            "the generator is seeded from fresh OS entropy."
        ),
    )
    show_progress: bool = Field(
        True, description="Display a progress bar while the trajectory is consumed."
    )

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        validate_assignment=True,
        # this allows any of these to be set via environment variables: SCANSIM_<name>
        env_prefix="SCANSIM_",
        env_nested_delimiter="__",
    )

    def rng(self) -> np.random.Generator:
        """Return a new generator seeded with `random_seed`."""
        return np.random.default_rng(self.random_seed)
