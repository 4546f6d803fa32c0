"""Region catalog built from the geographic reference CSV."""

from __future__ import annotations

import csv
from collections.abc import Iterable, Iterator, Mapping
from pathlib import Path
from types import MappingProxyType
from typing import Optional

from app.logging_config import get_logger, log_execution_time
from app.models.region import Region

logger = get_logger(__name__)

MIN_FIELDS = 3


class RegionLoadError(Exception):
    """Error raised when the region reference data cannot be loaded."""

    def __init__(self, source: str, message: str):
        self.source = source
        self.message = message
        super().__init__(f"Failed to load regions from '{source}': {message}")


class RegionCatalog:
    """Read-only mapping from region key to Region.

    Built once from reference data and shared by reference with the
    permission resolver. There are no update or delete operations.
    """

    def __init__(self, regions: Mapping[str, Region]):
        """Initialize catalog from an existing key to Region mapping.

        Raises:
            ValueError: If a key differs from its region's own key
        """
        for key, region in regions.items():
            if key != region.key:
                raise ValueError(f"Region key '{key}' does not match region '{region.key}'")
        self._regions: Mapping[str, Region] = MappingProxyType(dict(regions))

    @classmethod
    def from_rows(cls, rows: Iterable[list[str]]) -> RegionCatalog:
        """Build a catalog from ``(country, state, city, ...)`` rows.

        Rows with fewer than three fields are skipped. A later row with the
        same key replaces an earlier one.
        """
        regions: dict[str, Region] = {}
        skipped = 0
        for row in rows:
            if len(row) < MIN_FIELDS:
                skipped += 1
                continue
            country, state, city = row[0], row[1], row[2]
            region = Region(country=country, state=state, city=city)
            regions[region.key] = region

        if skipped:
            logger.debug("region_rows_skipped", count=skipped)
        return cls(regions)

    def contains(self, key: str) -> bool:
        """Check whether ``key`` is a known region key."""
        return key in self._regions

    def get(self, key: str) -> Optional[Region]:
        """Get a region by key, or None if unknown."""
        return self._regions.get(key)

    def filter(self, country: Optional[str] = None, state: Optional[str] = None) -> list[Region]:
        """List regions, optionally restricted to a country and/or state.

        Filters compare case-insensitively against the region attributes.
        """
        regions = list(self._regions.values())
        if country:
            regions = [r for r in regions if r.country.upper() == country.upper()]
        if state:
            regions = [r for r in regions if r.state.upper() == state.upper()]
        return sorted(regions, key=lambda r: r.key)

    def keys(self) -> list[str]:
        """All region keys in sorted order."""
        return sorted(self._regions)

    def __contains__(self, key: object) -> bool:
        return key in self._regions

    def __len__(self) -> int:
        return len(self._regions)

    def __iter__(self) -> Iterator[Region]:
        return iter(self._regions.values())

    def __repr__(self) -> str:
        return f"<RegionCatalog(regions={len(self._regions)})>"


@log_execution_time("region_catalog_load")
def load_regions(
    path: str | Path,
    has_header: bool = False,
    delimiter: str = ",",
) -> RegionCatalog:
    """Load the region catalog from a delimited file.

    Args:
        path: Path to the reference CSV
        has_header: Skip the first row when True
        delimiter: Field delimiter

    Returns:
        A fully populated RegionCatalog

    Raises:
        RegionLoadError: If the file is missing, unreadable or not parseable.
            No partial catalog is returned.
    """
    source = Path(path)
    try:
        with source.open("r", newline="", encoding="utf-8") as f:
            reader = csv.reader(f, delimiter=delimiter, strict=True)
            rows = list(reader)
    except OSError as e:
        raise RegionLoadError(str(source), e.strerror or str(e)) from e
    except (csv.Error, UnicodeDecodeError) as e:
        raise RegionLoadError(str(source), str(e)) from e

    if has_header and rows:
        rows = rows[1:]

    catalog = RegionCatalog.from_rows(rows)
    logger.info("region_catalog_loaded", source=str(source), regions=len(catalog))
    return catalog
