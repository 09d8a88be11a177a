from enum import Enum
from typing import Annotated, Any

from annotated_types import Ge
from pydantic import Field, model_validator

from ._base_model import ScanBaseModel


class ChannelId(int, Enum):
    """The two detection paths of the instrument."""

    C0 = 0
    C1 = 1

    def __repr__(self) -> str:
        return f"<ChannelId.{self.name}>"

    def __str__(self) -> str:
        return f"c{self.value}"

    @property
    def suffix(self) -> str:
        """Suffix appended to output file names, e.g. ``_c0``."""
        return f"_{self}"


class Channel(ScanBaseModel):
    """One detection channel and the molecules it records.

    Attributes
    ----------
    on : bool
        Whether the channel is recorded at all.  Disabled channels draw no random
        numbers and open no output files.
    molecules : list[str]
        Names of the molecules (as they appear in the trajectory file) that emit
        into this channel.
    brightness : list[int]
        Brightness of each molecule in photons per second, in the same order as
        `molecules`.
    """

    on: bool = False
    molecules: list[str] = Field(default_factory=list, alias="molec")
    brightness: list[Annotated[int, Ge(0)]] = Field(
        default_factory=list, alias="bright"
    )

    @model_validator(mode="before")
    @classmethod
    def _vmodel(cls, value: Any) -> Any:
        # `channel1: false` is shorthand for a disabled channel
        if isinstance(value, bool):
            return {"on": value}
        return value

    @model_validator(mode="after")
    def _check_lists(self) -> "Channel":
        if not self.on:
            return self
        if not self.molecules:
            raise ValueError("an enabled channel must list at least one molecule")
        if len(self.molecules) != len(self.brightness):
            raise ValueError(
                "Molecules name and brightness list must be equal in size "
                f"({len(self.molecules)} != {len(self.brightness)})."
            )
        return self

    def emission_probabilities(self, kappa: float) -> list[tuple[str, float]]:
        """Return ``(name, q)`` pairs, with `q` the per-sub-event emission chance."""
        pairs = zip(self.molecules, self.brightness, strict=True)
        return [(name, bright * kappa) for name, bright in pairs]
