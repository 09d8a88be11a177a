from __future__ import annotations

from typing import TYPE_CHECKING

from scansim.schema import ChannelId

if TYPE_CHECKING:
    from collections.abc import Iterator

    from scansim.schema import CommonParameters


class ChannelFilter:
    """Route molecule names to the channels that record them.

    Each enabled channel maps a molecule name to the emission probabilities of its
    entries with that name; a name listed twice in a channel is drawn twice.  Names
    a channel does not list are ignored by that channel.
    """

    def __init__(self, common: CommonParameters) -> None:
        self._table: dict[ChannelId, dict[str, tuple[float, ...]]] = {}
        for cid, channel in common.active_channels():
            lookup: dict[str, tuple[float, ...]] = {}
            for name, q in channel.emission_probabilities(common.kappa):
                lookup[name] = (*lookup.get(name, ()), q)
            self._table[cid] = lookup

    @property
    def channels(self) -> tuple[ChannelId, ...]:
        """The enabled channels, in channel order."""
        return tuple(self._table)

    def __contains__(self, channel: object) -> bool:
        return channel in self._table

    def probabilities(self, channel: ChannelId, molecule: str) -> tuple[float, ...]:
        """Emission probabilities of `molecule` in `channel` (empty if unlisted)."""
        return self._table.get(channel, {}).get(molecule, ())

    def matches(self, molecule: str) -> Iterator[tuple[ChannelId, float]]:
        """Yield ``(channel, q)`` for every channel entry matching `molecule`."""
        for cid, lookup in self._table.items():
            for q in lookup.get(molecule, ()):
                yield cid, q
