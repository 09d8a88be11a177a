from collections.abc import Iterator
from typing import Annotated

from annotated_types import Gt
from pydantic import Field

from scansim.errors import ParameterValidationError
from scansim.util import round_half_up

from ._base_model import ScanBaseModel
from .channel import Channel, ChannelId

PositiveFloat = Annotated[float, Gt(0)]

# 1 cm^2 = 1e8 um^2; diffusion coefficients are given in cm^2/s, waists in um
_CM2_TO_UM2 = 1e8


class CommonParameters(ScanBaseModel):
    """Parameters shared by every scan mode.

    Attributes
    ----------
    kappa : float
        Duration of one elementary sub-event, in seconds.  Each simulation time step
        is split into ``round(time_step / kappa)`` independent detection trials.
    w_xy : float
        Lateral 1/e^2 waist of the PSF, in um.
    w_z : float
        Axial 1/e^2 waist of the PSF, in um.
    noise : bool
        Add detector noise to every completed pixel or sample.
    emission_wavelength : int, optional
        Emission wavelength bucket in nm.  Informational; the sheet illumination
        mode carries its own wavelength.
    channel0, channel1 : Channel
        The two detection channels.  Both blocks are required, either may be
        disabled.
    """

    kappa: PositiveFloat
    w_xy: PositiveFloat
    w_z: PositiveFloat
    noise: bool = False
    emission_wavelength: int | None = Field(None, alias="lambda")
    channel0: Channel
    channel1: Channel

    def channel(self, channel_id: ChannelId) -> Channel:
        return self.channel0 if channel_id is ChannelId.C0 else self.channel1

    def active_channels(self) -> Iterator[tuple[ChannelId, Channel]]:
        """Yield ``(id, channel)`` for every enabled channel, in channel order."""
        for cid in ChannelId:
            if (ch := self.channel(cid)).on:
                yield cid, ch

    def sub_events(self, time_step: float) -> int:
        """Number of elementary detection trials per simulation time step."""
        return round_half_up(time_step / self.kappa)

    def diffusion_time(self, max_diffusion: float) -> float:
        """Lateral diffusion time through the PSF (s), for D in cm^2/s."""
        return self.w_xy**2 / (4 * max_diffusion * _CM2_TO_UM2)

    def check_time_step(self, time_step: float, max_diffusion: float) -> None:
        """Reject trajectories whose time step is too coarse for the PSF.

        The fastest molecule must need at least ten simulation steps to cross the
        PSF waist, otherwise the per-step photon sampling is meaningless.
        """
        if self.diffusion_time(max_diffusion) < 10 * time_step:
            raise ParameterValidationError(
                "Simulation time step is not adequate for the maximum diffusion "
                f"coefficient simulated ({max_diffusion:g} cm^2/s). "
                "Decrease the particle-simulation time step."
            )
        if self.sub_events(time_step) < 1:
            raise ParameterValidationError(
                f"kappa ({self.kappa:g} s) is longer than the simulation time step "
                f"({time_step:g} s)."
            )
