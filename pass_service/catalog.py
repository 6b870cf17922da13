"""
Satellite Catalog

Builds the satellite catalog from three sources, in order of precedence for
category, frequency and mode fields:

    1. curated metadata
    2. the primary SatNOGS transmitter
    3. defaults (category OTHER, fields unset)

Only satellites present in the bulk element feed are listed. Featured
satellites come first in their fixed order, the rest sorted by name.
"""

import logging
from collections import Counter
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from pass_service.metadata import FEATURED_SATELLITES, get_curated_satellite
from pass_service.models import (
    SatelliteCategory,
    SatelliteStatus,
    SatelliteWithTLE,
    TLEEntry,
    Transmitter,
    catalog_key,
)
from pass_service.transmitters import (
    category_from_transmitter,
    formatted_frequencies,
    group_by_norad_id,
    primary_transmitter,
)

logger = logging.getLogger(__name__)


class CatalogResult(BaseModel):
    satellites: List[SatelliteWithTLE] = Field(default_factory=list)
    error: Optional[str] = None


def _first_set(*values):
    for value in values:
        if value is not None:
            return value
    return None


def build_entry(norad_id: str, tle: TLEEntry, transmitters: List[Transmitter]) -> SatelliteWithTLE:
    """
    Merge one bulk element entry with curated and transmitter metadata.

    Each field resolves on its own: the curated value when set, else the
    primary transmitter's, else the default.
    """
    curated = get_curated_satellite(norad_id)
    primary = primary_transmitter(transmitters)

    uplink = downlink = mode = description = None
    category = SatelliteCategory.OTHER
    status = SatelliteStatus.UNKNOWN
    if primary is not None:
        uplink, downlink = formatted_frequencies(primary)
        mode = primary.mode
        description = primary.description
        category = category_from_transmitter(primary)
        if primary.alive:
            status = SatelliteStatus.ACTIVE

    if curated is None:
        return SatelliteWithTLE(
            id=norad_id,
            name=tle.name,
            norad_id=norad_id,
            category=category,
            uplink=uplink,
            downlink=downlink,
            mode=mode,
            description=description,
            status=status,
            tle=tle,
            transmitters=transmitters,
        )

    return SatelliteWithTLE(
        id=curated.id,
        name=curated.name,
        norad_id=norad_id,
        category=curated.category,
        uplink=_first_set(curated.uplink, uplink),
        downlink=_first_set(curated.downlink, downlink),
        mode=_first_set(curated.mode, mode),
        description=_first_set(curated.description, description),
        status=curated.status,
        tle=tle,
        transmitters=transmitters,
    )


def sort_catalog(satellites: List[SatelliteWithTLE]) -> List[SatelliteWithTLE]:
    """Featured satellites first in allow-list order, then by name."""
    featured_rank = {norad_id: rank for rank, norad_id in enumerate(FEATURED_SATELLITES)}

    featured = sorted(
        (s for s in satellites if s.norad_id in featured_rank),
        key=lambda s: featured_rank[s.norad_id],
    )
    others = sorted(
        (s for s in satellites if s.norad_id not in featured_rank),
        key=lambda s: s.name.casefold(),
    )
    return featured + others


class CatalogBuilder:
    """
    Args:
        bulk_store: BulkElementStore
        transmitter_registry: TransmitterRegistry
    """

    def __init__(self, bulk_store, transmitter_registry):
        self.bulk_store = bulk_store
        self.transmitter_registry = transmitter_registry

    def build(self, force_refresh: bool = False) -> CatalogResult:
        """
        Build the catalog.

        Returns:
            CatalogResult; ``error`` carries the bulk fetch warning when the
            elements are stale, or the failure when there are none
        """
        bulk_outcome = self.bulk_store.fetch(force_refresh=force_refresh)
        if bulk_outcome.data is None:
            logger.error(f"Cannot build catalog: {bulk_outcome.error}")
            return CatalogResult(satellites=[], error=bulk_outcome.error)

        transmitter_outcome = self.transmitter_registry.fetch(force_refresh=force_refresh)
        if transmitter_outcome.data is None:
            logger.warning(f"Building catalog without transmitter data: {transmitter_outcome.error}")
            grouped: Dict[str, List[Transmitter]] = {}
        else:
            grouped = group_by_norad_id(transmitter_outcome.data)

        satellites = [
            build_entry(norad_id, tle, grouped.get(catalog_key(norad_id), []))
            for norad_id, tle in bulk_outcome.data.satellites.items()
        ]

        logger.info(f"Built catalog with {len(satellites)} satellites")
        return CatalogResult(satellites=sort_catalog(satellites), error=bulk_outcome.error)


def search_satellites(satellites: List[SatelliteWithTLE], query: str) -> List[SatelliteWithTLE]:
    """Case-insensitive match on name, id, catalog number or mode."""
    needle = (query or "").strip().lower()
    if not needle:
        return satellites

    def matches(satellite: SatelliteWithTLE) -> bool:
        fields = (satellite.name, satellite.id, satellite.norad_id, satellite.mode or "")
        return any(needle in field.lower() for field in fields)

    return [s for s in satellites if matches(s)]


def get_satellite_by_norad_id(satellites: List[SatelliteWithTLE], norad_id: str) -> Optional[SatelliteWithTLE]:
    target = catalog_key(str(norad_id))
    for satellite in satellites:
        if catalog_key(satellite.norad_id) == target:
            return satellite
    return None


def get_satellite_by_id(satellites: List[SatelliteWithTLE], sat_id: str) -> Optional[SatelliteWithTLE]:
    for satellite in satellites:
        if satellite.id == sat_id:
            return satellite
    return None


def group_satellites_by_category(
    satellites: List[SatelliteWithTLE],
) -> Dict[SatelliteCategory, List[SatelliteWithTLE]]:
    grouped: Dict[SatelliteCategory, List[SatelliteWithTLE]] = {c: [] for c in SatelliteCategory}
    for satellite in satellites:
        grouped[satellite.category].append(satellite)
    return grouped


def get_category_counts(satellites: List[SatelliteWithTLE]) -> Dict[SatelliteCategory, int]:
    counts = Counter(s.category for s in satellites)
    return {category: counts.get(category, 0) for category in SatelliteCategory}
