"""
Region collection artifact: GeoJSON serialization, file I/O and the
point-in-region filter that answers "locations in region X".

Point-to-region assignment is first-matching-region-wins in collection
order; a point exactly on a shared boundary belongs to whichever region
comes first.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from pydantic import BaseModel, Field
from shapely.geometry import Point as ShapelyPoint, mapping, shape
from shapely.prepared import prep

from ..models import Point, Region
from .builder import RegionBuildConfig, RegionBuildResult

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class YearTagModel(BaseModel):
    year: int
    count: int = Field(..., ge=0)


class RegionProperties(BaseModel):
    """Properties carried by every region feature."""

    id: str = Field(..., description="Directional id, the region's public identifier")
    direction_id: str = Field(..., alias="directionId")
    cluster_id: int = Field(..., alias="clusterID")
    climate_zone: Optional[str] = Field(default=None, alias="climateZone")
    climate_name: Optional[str] = Field(default=None, alias="climateName")
    point_count: int = Field(..., alias="pointCount", ge=0)
    year_tags: List[YearTagModel] = Field(default_factory=list, alias="yearTags")
    city_name: Optional[str] = Field(default=None, alias="cityName")
    hull_method: Optional[str] = Field(default=None, alias="hullMethod")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_region(cls, region: Region) -> "RegionProperties":
        direction_id = region.direction_id or str(region.region_id)
        return cls(
            id=direction_id,
            direction_id=direction_id,
            cluster_id=region.region_id,
            climate_zone=region.climate_zone,
            climate_name=region.climate_name,
            point_count=region.point_count,
            year_tags=[YearTagModel(**t.to_dict()) for t in region.year_tags],
            city_name=region.city_name,
            hull_method=region.hull_method,
        )


class RegionCollectionMetadata(BaseModel):
    """Run metadata stored next to the features."""

    country: Optional[str] = None
    country_code: Optional[str] = Field(default=None, alias="countryCode")
    target_regions: int = Field(..., alias="targetRegions", ge=1)
    actual_regions: int = Field(..., alias="actualRegions", ge=0)
    mode: str = "proximity"
    dropped_points: int = Field(default=0, alias="droppedPoints", ge=0)
    warnings: List[str] = Field(default_factory=list)
    generated_at: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat(), alias="generatedAt"
    )
    options: Dict[str, Any] = Field(default_factory=dict)

    model_config = {"populate_by_name": True}


def build_metadata(
    result: RegionBuildResult,
    config: RegionBuildConfig,
    country: Optional[str] = None,
    country_code: Optional[str] = None,
) -> RegionCollectionMetadata:
    diag = result.diagnostics
    return RegionCollectionMetadata(
        country=country,
        country_code=country_code,
        target_regions=config.target_regions,
        actual_regions=len(result.regions),
        mode=diag.mode,
        dropped_points=diag.dropped_points,
        warnings=list(diag.warnings),
        options={
            "useKoppen": config.climate_aware,
            "koppenResolution": config.climate_resolution,
            "seed": config.seed,
        },
    )


def region_feature(region: Region) -> Dict[str, Any]:
    return {
        "type": "Feature",
        "geometry": mapping(region.polygon),
        "properties": RegionProperties.from_region(region).model_dump(by_alias=True),
    }


def regions_to_feature_collection(
    regions: Sequence[Region],
    metadata: Optional[RegionCollectionMetadata] = None,
) -> Dict[str, Any]:
    """GeoJSON FeatureCollection of region polygons, optionally with run metadata."""
    collection: Dict[str, Any] = {
        "type": "FeatureCollection",
        "features": [region_feature(r) for r in regions],
    }
    if metadata is not None:
        collection["metadata"] = metadata.model_dump(by_alias=True)
    return collection


def save_region_collection(collection: Mapping[str, Any], path: PathLike) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(collection, f, indent=2, ensure_ascii=False)
    logger.info("Saved %d regions to %s", len(collection.get("features", [])), path)
    return path


def load_region_collection(path: PathLike) -> Dict[str, Any]:
    """Load a saved collection, validating every feature's properties."""
    with open(path, "r", encoding="utf-8") as f:
        collection = json.load(f)
    if collection.get("type") != "FeatureCollection":
        raise ValueError(f"{path} is not a GeoJSON FeatureCollection")
    for feature in collection.get("features", []):
        RegionProperties.model_validate(feature.get("properties") or {})
    return collection


def load_raw_dataset(path: PathLike) -> Any:
    """Read a raw coverage export (JSON) for :func:`build_country_regions`."""
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _region_key(feature: Mapping[str, Any]) -> str:
    props = feature.get("properties") or {}
    return str(props.get("directionId") or props.get("id") or props.get("clusterID"))


def assign_points_to_regions(
    points: Sequence[Point],
    collection: Mapping[str, Any],
) -> Dict[str, List[Point]]:
    """
    Map each point to the first region (in collection order) that covers it.

    Returns a dict keyed by directional id; points outside every region are
    not included.
    """
    features = list(collection.get("features") or [])
    shapes = []
    for feature in features:
        geom = shape(feature["geometry"])
        shapes.append((_region_key(feature), geom.bounds, prep(geom)))

    assigned: Dict[str, List[Point]] = {key: [] for key, _, _ in shapes}
    unassigned = 0
    for point in points:
        location = ShapelyPoint(point.lng, point.lat)
        for key, (min_x, min_y, max_x, max_y), prepared in shapes:
            if not (min_x <= point.lng <= max_x and min_y <= point.lat <= max_y):
                continue
            if prepared.covers(location):
                assigned[key].append(point)
                break
        else:
            unassigned += 1

    logger.debug("Mapped %d points, %d outside every region", len(points) - unassigned, unassigned)
    return assigned


def points_in_region(
    points: Sequence[Point],
    collection: Mapping[str, Any],
    region_id: Union[str, int],
) -> List[Point]:
    """
    Points belonging to one region, addressed by directional id or cluster id.

    Raises:
        KeyError: If no region in ``collection`` matches ``region_id``
    """
    wanted = str(region_id)
    key = None
    for feature in collection.get("features") or []:
        props = feature.get("properties") or {}
        if wanted in (str(props.get("directionId")), str(props.get("id")), str(props.get("clusterID"))):
            key = _region_key(feature)
            break
    if key is None:
        raise KeyError(f"Region '{region_id}' not found")
    return assign_points_to_regions(points, collection)[key]
