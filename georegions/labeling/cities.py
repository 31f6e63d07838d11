"""
City names for regions.

A region is named after the most populous gazetteer cities inside its
polygon: the largest alone when it dwarfs the runner-up, otherwise
``"A / B"``. Regions with no city inside keep ``city_name = None``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional, Protocol, Sequence, Tuple

import pandas as pd
from shapely.geometry import Point as ShapelyPoint
from shapely.prepared import prep

from ..models import Region

logger = logging.getLogger(__name__)

MAX_CITIES = 2
DOMINANCE_RATIO = 3.0


@dataclass(frozen=True)
class City:
    """A gazetteer entry."""

    name: str
    lat: float
    lng: float
    country_code: str
    population: int = 0


class CityGazetteer(Protocol):
    def cities_in_bounds(
        self, bounds: Tuple[float, float, float, float], country_code: str
    ) -> Iterable[City]:
        """Cities of ``country_code`` inside ``(min_lng, min_lat, max_lng, max_lat)``."""
        ...


class InMemoryGazetteer:
    """Gazetteer backed by a list of cities."""

    def __init__(self, cities: Iterable[City]):
        self.cities: List[City] = list(cities)

    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, Any]]) -> "InMemoryGazetteer":
        """Build from mappings with ``name, lat, lng, countryCode, population`` keys."""
        cities = []
        for record in records:
            try:
                cities.append(
                    City(
                        name=str(record["name"]),
                        lat=float(record["lat"]),
                        lng=float(record["lng"]),
                        country_code=str(record.get("countryCode") or record.get("country_code") or ""),
                        population=int(record.get("population") or 0),
                    )
                )
            except (KeyError, TypeError, ValueError):
                logger.debug("Skipping malformed gazetteer record: %r", record)
        return cls(cities)

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame) -> "InMemoryGazetteer":
        """Build from a DataFrame with ``name, lat, lng, country_code, population`` columns."""
        if df.empty:
            return cls([])
        data = df.rename(columns={"countryCode": "country_code"})
        data = data.dropna(subset=["name", "lat", "lng"]).copy()
        data["population"] = data.get("population", 0)
        data["population"] = data["population"].fillna(0).astype(int)
        return cls(
            City(
                name=str(row.name),
                lat=float(row.lat),
                lng=float(row.lng),
                country_code=str(row.country_code),
                population=int(row.population),
            )
            for row in data.itertuples(index=False)
        )

    def cities_in_bounds(
        self, bounds: Tuple[float, float, float, float], country_code: str
    ) -> List[City]:
        min_lng, min_lat, max_lng, max_lat = bounds
        code = country_code.upper()
        return [
            c
            for c in self.cities
            if c.country_code.upper() == code
            and min_lng <= c.lng <= max_lng
            and min_lat <= c.lat <= max_lat
        ]


def display_name(
    cities: Sequence[City],
    max_cities: int = MAX_CITIES,
    dominance_ratio: float = DOMINANCE_RATIO,
) -> Optional[str]:
    """
    Name for a set of cities inside one region.

    Takes the ``max_cities`` most populous; a leader more than
    ``dominance_ratio`` times the runner-up's population is reported alone.
    """
    if not cities:
        return None
    ranked = sorted(cities, key=lambda c: (-c.population, c.name))[:max_cities]
    if len(ranked) >= 2 and ranked[0].population > dominance_ratio * ranked[1].population:
        ranked = ranked[:1]
    return " / ".join(c.name for c in ranked)


def attribute_city_names(
    regions: Sequence[Region],
    gazetteer: Optional[CityGazetteer],
    country_code: Optional[str],
    max_cities: int = MAX_CITIES,
    dominance_ratio: float = DOMINANCE_RATIO,
) -> List[Region]:
    """
    Set ``city_name`` on each region from the cities inside its polygon.

    Points on a polygon boundary count as inside. Missing gazetteer or
    country code leaves every name unset.
    """
    regions = list(regions)
    if gazetteer is None or not country_code:
        return regions

    named = 0
    for region in regions:
        shape = prep(region.polygon)
        inside = [
            city
            for city in gazetteer.cities_in_bounds(region.polygon.bounds, country_code)
            if shape.covers(ShapelyPoint(city.lng, city.lat))
        ]
        region.city_name = display_name(inside, max_cities, dominance_ratio)
        if region.city_name:
            named += 1

    logger.info("Named %d/%d regions after cities", named, len(regions))
    return regions
