"""
Unit Tests for Labeling Module (georegions/labeling)

Tests compass octants, directional id assignment with primary-direction
backfill, and city name attribution.
"""

import re

import pandas as pd
import pytest
from shapely.geometry import box

from georegions.labeling.cities import (
    City,
    InMemoryGazetteer,
    attribute_city_names,
    display_name,
)
from georegions.labeling.directions import assign_direction_ids, country_centroid, octant
from georegions.models import Region

DIRECTION_ID = re.compile(r"^(C|(N|NE|E|SE|S|SW|W|NW)[1-9]\d*)$")


def _region(region_id, lat, lng, half=0.05):
    """Region with no member points, centred on (lat, lng)."""
    return Region(
        region_id=region_id,
        polygon=box(lng - half, lat - half, lng + half, lat + half),
        point_count=10,
    )


def _ids(regions):
    return {r.region_id: r.direction_id for r in regions}


# ==============================================================================
# Octant Tests
# ==============================================================================

class TestOctant:
    """Test bearing to compass octant mapping."""

    @pytest.mark.parametrize("bearing,expected", [
        (0.0, "N"),
        (22.4, "N"),
        (22.5, "NE"),
        (90.0, "E"),
        (135.0, "SE"),
        (180.0, "S"),
        (225.0, "SW"),
        (270.0, "W"),
        (315.0, "NW"),
        (337.4, "NW"),
        (337.5, "N"),
        (359.9, "N"),
        (360.0, "N"),
    ])
    def test_octant_boundaries(self, bearing, expected):
        """Test octant boundaries at 22.5 degree offsets."""
        assert octant(bearing) == expected


# ==============================================================================
# Direction Id Tests
# ==============================================================================

class TestAssignDirectionIds:
    """Test directional region identifiers."""

    def test_cross_layout(self):
        """Test a centre region with one region in each primary direction."""
        regions = [
            _region(0, 0.0, 0.0),
            _region(1, 1.0, 0.0),
            _region(2, 0.0, 1.0),
            _region(3, -1.0, 0.0),
            _region(4, 0.0, -1.0),
        ]
        assign_direction_ids(regions)

        assert _ids(regions) == {0: "C", 1: "N1", 2: "E1", 3: "S1", 4: "W1"}

    def test_ranked_by_distance(self):
        """Test that regions in one octant are ranked nearest first."""
        regions = [
            _region(0, 0.0, 0.0),
            _region(1, 2.0, 0.0),
            _region(2, 1.0, 0.0),
            _region(3, -1.5, 0.0),
        ]
        assign_direction_ids(regions)

        assert _ids(regions) == {0: "C", 1: "N2", 2: "N1", 3: "S1"}

    def test_primary_directions_backfilled(self):
        """Test that empty N/E/S/W buckets borrow from adjacent intercardinals."""
        regions = [
            _region(0, 0.0, 0.0),
            _region(1, 1.0, 1.0),
            _region(2, -1.0, 1.0),
            _region(3, -1.0, -1.0),
            _region(4, 1.0, -1.0),
        ]
        assign_direction_ids(regions)

        assert _ids(regions) == {0: "C", 1: "N1", 2: "E1", 3: "S1", 4: "W1"}

    def test_intercardinal_kept_when_primary_filled(self):
        """Test that an intercardinal region stays put when its neighbors are occupied."""
        regions = [
            _region(0, 0.0, 0.0),
            _region(1, 2.0, 0.0),
            _region(2, 0.0, 2.0),
            _region(3, -2.0, 0.0),
            _region(4, 0.0, -2.0),
            _region(5, 1.0, 1.0),
        ]
        assign_direction_ids(regions)

        assert _ids(regions)[5] == "NE1"

    def test_ids_unique_and_well_formed(self):
        """Test that every region gets a distinct, well-formed id."""
        regions = [_region(i, 10.0 + (i // 5) * 0.4, 20.0 + (i % 5) * 0.4) for i in range(20)]
        ordered = assign_direction_ids(regions)

        ids = [r.direction_id for r in ordered]
        assert len(set(ids)) == 20
        assert ids.count("C") == 1
        assert all(DIRECTION_ID.match(i) for i in ids)

    def test_center_listed_first(self):
        """Test that the returned order starts with the centre region."""
        regions = [_region(1, 1.0, 0.0), _region(0, 0.0, 0.0), _region(2, -1.0, 0.0)]
        ordered = assign_direction_ids(regions)

        assert ordered[0].direction_id == "C"
        assert ordered[0].region_id == 0

    def test_single_region(self):
        """Test that a lone region is the centre."""
        regions = [_region(0, 5.0, 5.0)]
        assign_direction_ids(regions)
        assert regions[0].direction_id == "C"

    def test_empty(self):
        """Test that no regions is a no-op."""
        assert assign_direction_ids([]) == []

    def test_geometry_untouched(self):
        """Test that labeling does not change polygons."""
        regions = [_region(0, 0.0, 0.0), _region(1, 1.0, 0.0)]
        before = [r.polygon.wkt for r in regions]

        assign_direction_ids(regions)

        assert [r.polygon.wkt for r in regions] == before

    def test_country_centroid(self):
        """Test that the country centroid averages region centroids."""
        regions = [_region(0, 0.0, 0.0), _region(1, 2.0, 4.0)]
        lat, lng = country_centroid(regions)

        assert lat == pytest.approx(1.0)
        assert lng == pytest.approx(2.0)


# ==============================================================================
# City Name Tests
# ==============================================================================

class TestDisplayName:
    """Test region names from contained cities."""

    def test_two_comparable_cities(self):
        """Test that two similar-sized cities are joined."""
        cities = [City("Beta", 0, 0, "XX", 400_000), City("Alpha", 0, 0, "XX", 900_000)]
        assert display_name(cities) == "Alpha / Beta"

    def test_dominant_city_alone(self):
        """Test that a city over three times the runner-up is named alone."""
        cities = [City("Alpha", 0, 0, "XX", 1_000_000), City("Beta", 0, 0, "XX", 300_000)]
        assert display_name(cities) == "Alpha"

    def test_exactly_three_times_not_dominant(self):
        """Test that the dominance ratio is a strict inequality."""
        cities = [City("Alpha", 0, 0, "XX", 900_000), City("Beta", 0, 0, "XX", 300_000)]
        assert display_name(cities) == "Alpha / Beta"

    def test_single_city(self):
        """Test one contained city."""
        assert display_name([City("Solo", 0, 0, "XX", 10)]) == "Solo"

    def test_only_top_two(self):
        """Test that at most two names are used."""
        cities = [City(n, 0, 0, "XX", p) for n, p in [("A", 500), ("B", 400), ("C", 300)]]
        assert display_name(cities) == "A / B"

    def test_no_cities(self):
        """Test that an empty region has no name."""
        assert display_name([]) is None


class TestAttributeCityNames:
    """Test naming regions with a gazetteer."""

    def test_cities_inside_polygon(self, gazetteer):
        """Test that only cities of the country inside the polygon are used."""
        region = Region(region_id=0, polygon=box(20.0, 10.0, 21.0, 11.0), point_count=5)
        attribute_city_names([region], gazetteer, "XX")

        assert region.city_name == "Alpha / Beta"

    def test_country_code_case_insensitive(self, gazetteer):
        """Test that country codes match regardless of case."""
        region = Region(region_id=0, polygon=box(20.4, 10.4, 20.6, 10.6), point_count=5)
        attribute_city_names([region], gazetteer, "xx")

        assert region.city_name == "Alpha"

    def test_city_on_boundary_counts(self, gazetteer):
        """Test that a city exactly on the polygon edge is inside."""
        region = Region(region_id=0, polygon=box(20.8, 10.8, 21.0, 11.0), point_count=5)
        attribute_city_names([region], gazetteer, "XX")

        assert region.city_name == "Gamma"

    def test_no_city_inside(self, gazetteer):
        """Test that regions without cities keep no name."""
        region = Region(region_id=0, polygon=box(0.0, 0.0, 1.0, 1.0), point_count=5)
        attribute_city_names([region], gazetteer, "XX")

        assert region.city_name is None

    def test_missing_gazetteer(self):
        """Test that naming is skipped without a gazetteer or country code."""
        region = Region(region_id=0, polygon=box(20.0, 10.0, 21.0, 11.0), point_count=5)

        attribute_city_names([region], None, "XX")
        assert region.city_name is None

        attribute_city_names([region], InMemoryGazetteer([]), None)
        assert region.city_name is None


class TestInMemoryGazetteer:
    """Test gazetteer construction."""

    def test_from_records_skips_malformed(self):
        """Test that bad records are ignored."""
        gazetteer = InMemoryGazetteer.from_records([
            {"name": "Lima", "lat": -12.05, "lng": -77.04, "countryCode": "PE", "population": 8_000_000},
            {"name": "Cusco", "lat": -13.53, "lng": -71.97, "country_code": "PE"},
            {"name": "Broken", "lat": "north", "lng": 0.0},
            {"lat": 1.0, "lng": 1.0},
        ])

        assert [c.name for c in gazetteer.cities] == ["Lima", "Cusco"]
        assert gazetteer.cities[1].population == 0

    def test_from_dataframe(self):
        """Test construction from a DataFrame, dropping rows without coordinates."""
        df = pd.DataFrame({
            "name": ["Lima", "Arequipa", "Nowhere"],
            "lat": [-12.05, -16.41, None],
            "lng": [-77.04, -71.54, 0.0],
            "countryCode": ["PE", "PE", "PE"],
            "population": [8_000_000, None, 1],
        })
        gazetteer = InMemoryGazetteer.from_dataframe(df)

        assert [c.name for c in gazetteer.cities] == ["Lima", "Arequipa"]
        assert gazetteer.cities[1].population == 0

    def test_bounds_filter(self, gazetteer):
        """Test the bounding-box and country filter."""
        found = gazetteer.cities_in_bounds((20.0, 10.0, 20.6, 10.6), "XX")
        assert sorted(c.name for c in found) == ["Alpha", "Beta"]
