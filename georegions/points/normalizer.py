"""
Point normalization.

Turns raw coverage exports into canonical :class:`~georegions.models.Point`
records. Invalid or malformed records are dropped and counted, never raised.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from numbers import Real
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..models import Point

logger = logging.getLogger(__name__)

_YEAR_RE = re.compile(r"^(\d{4})")


@dataclass
class NormalizationResult:
    """Normalized points plus bookkeeping about what was dropped."""

    points: List[Point]
    invalid_count: int
    source_format: str
    """One of ``custom_coordinates``, ``records``, ``feature_collection`` or ``points``."""

    @property
    def total_records(self) -> int:
        return len(self.points) + self.invalid_count


def parse_years(tags: Iterable[Any]) -> Tuple[int, ...]:
    """
    Extract the leading 4-digit year of each tag.

    >>> parse_years(["2019-07", "2013-06", "gen4"])
    (2019, 2013)
    """
    years = []
    for tag in tags or ():
        if not isinstance(tag, str):
            continue
        match = _YEAR_RE.match(tag)
        if match:
            years.append(int(match.group(1)))
    return tuple(years)


def _valid_coordinate(value: Any, limit: float) -> bool:
    if isinstance(value, bool) or not isinstance(value, Real):
        return False
    value = float(value)
    return math.isfinite(value) and -limit <= value <= limit


def _tag_tuple(tags: Any) -> Tuple[str, ...]:
    if not isinstance(tags, (list, tuple)):
        return ()
    return tuple(t for t in tags if isinstance(t, str))


def _year_tuple(years: Any) -> Tuple[int, ...]:
    """Parse pass-through years; raises ValueError for anything else."""
    if not isinstance(years, (list, tuple)):
        raise ValueError(f"years must be a list, got {type(years).__name__}")
    parsed = []
    for year in years:
        if isinstance(year, bool):
            raise ValueError(f"invalid year {year!r}")
        parsed.append(int(year))
    return tuple(parsed)


def _make_point(
    point_id: int,
    lat: float,
    lng: float,
    tags: Any,
    years: Optional[Sequence[int]] = None,
    climate_code: Optional[str] = None,
) -> Point:
    tag_tuple = _tag_tuple(tags)
    year_tuple = _year_tuple(years) if years is not None else parse_years(tag_tuple)
    return Point(
        point_id=point_id,
        lng=float(lng),
        lat=float(lat),
        years=year_tuple,
        latest_year=max(year_tuple) if year_tuple else None,
        climate_code=climate_code,
        tags=tag_tuple,
    )


def _from_records(records: Iterable[Mapping[str, Any]]) -> Tuple[List[Point], int]:
    points: List[Point] = []
    invalid = 0
    for index, record in enumerate(records):
        if not isinstance(record, Mapping):
            invalid += 1
            continue
        lat, lng = record.get("lat"), record.get("lng")
        if not (_valid_coordinate(lat, 90.0) and _valid_coordinate(lng, 180.0)):
            logger.debug("Invalid coordinates at index %d, skipping", index)
            invalid += 1
            continue
        extra = record.get("extra") or {}
        tags = extra.get("tags") if isinstance(extra, Mapping) else None
        points.append(_make_point(len(points), lat, lng, tags))
    return points, invalid


def _from_feature_collection(collection: Mapping[str, Any]) -> Tuple[List[Point], int]:
    points: List[Point] = []
    invalid = 0
    features = collection.get("features")
    if not isinstance(features, (list, tuple)):
        features = []
    for index, feature in enumerate(features):
        geometry = feature.get("geometry") if isinstance(feature, Mapping) else None
        if not isinstance(geometry, Mapping):
            invalid += 1
            continue
        coords = geometry.get("coordinates")
        if (
            geometry.get("type") != "Point"
            or not isinstance(coords, (list, tuple))
            or len(coords) < 2
        ):
            invalid += 1
            continue
        lng, lat = coords[0], coords[1]
        if not (_valid_coordinate(lat, 90.0) and _valid_coordinate(lng, 180.0)):
            invalid += 1
            continue
        props = feature.get("properties")
        if not isinstance(props, Mapping):
            props = {}
        climate = props.get("climate")
        climate_code = climate.get("code") if isinstance(climate, Mapping) else props.get("climateCode")
        if not isinstance(climate_code, str):
            climate_code = None
        try:
            point = _make_point(
                len(points),
                lat,
                lng,
                props.get("tags"),
                years=props.get("years"),
                climate_code=climate_code,
            )
        except (TypeError, ValueError) as e:
            logger.debug("Invalid properties on feature %d, skipping: %s", index, e)
            invalid += 1
            continue
        points.append(point)
    return points, invalid


def normalize_points(raw: Any) -> NormalizationResult:
    """
    Normalize a raw coverage dataset.

    Accepts a coverage export (``{"customCoordinates": [...]}``), a bare list
    of ``{lat, lng, extra: {tags}}`` records, a GeoJSON FeatureCollection of
    points, or an iterable of existing :class:`Point` objects. Output order
    follows input order, with ``point_id`` re-assigned sequentially.
    """
    if isinstance(raw, Mapping) and raw.get("type") == "FeatureCollection":
        points, invalid = _from_feature_collection(raw)
        source = "feature_collection"
    elif isinstance(raw, Mapping) and "customCoordinates" in raw:
        points, invalid = _from_records(raw.get("customCoordinates") or [])
        source = "custom_coordinates"
    elif isinstance(raw, Mapping):
        raise TypeError(
            "Unrecognised dataset mapping; expected 'customCoordinates' or a FeatureCollection"
        )
    else:
        items = list(raw)
        if items and all(isinstance(item, Point) for item in items):
            points = [
                Point(
                    point_id=i,
                    lng=p.lng,
                    lat=p.lat,
                    years=p.years,
                    latest_year=p.latest_year,
                    climate_code=p.climate_code,
                    tags=p.tags,
                )
                for i, p in enumerate(items)
            ]
            invalid = 0
            source = "points"
        else:
            points, invalid = _from_records(items)
            source = "records"

    if invalid:
        logger.warning("Dropped %d invalid records", invalid)
    logger.info("Normalized %d points from %s input", len(points), source)
    return NormalizationResult(points=points, invalid_count=invalid, source_format=source)
