"""Region model for the geographic reference catalog."""

from __future__ import annotations

from dataclasses import dataclass

REGION_KEY_SEPARATOR = "-"


def make_region_key(city: str, state: str, country: str) -> str:
    """Build the normalized ``CITY-STATE-COUNTRY`` key for a location."""
    return REGION_KEY_SEPARATOR.join((city, state, country)).upper()


@dataclass(frozen=True, eq=False)
class Region:
    """A single valid geographic location.

    Attributes:
        country: Country name as it appears in the reference data
        state: State or province name
        city: City name
    """

    country: str
    state: str
    city: str

    @property
    def key(self) -> str:
        """Region key used for catalog lookups and rule matching."""
        return make_region_key(self.city, self.state, self.country)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Region):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)

    def __repr__(self) -> str:
        return f"<Region(key={self.key})>"
