"""Post-hoc region labels: directional ids and city names."""

from .cities import City, CityGazetteer, InMemoryGazetteer, attribute_city_names, display_name
from .directions import assign_direction_ids, octant

__all__ = [
    "City",
    "CityGazetteer",
    "InMemoryGazetteer",
    "attribute_city_names",
    "display_name",
    "assign_direction_ids",
    "octant",
]
