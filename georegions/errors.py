"""Exceptions raised by the region-construction pipeline."""


class RegionBuildError(Exception):
    """Base class for region-construction failures."""


class InsufficientDataError(RegionBuildError):
    """Raised when a dataset is too sparse to produce any region at all."""

    def __init__(self, message: str, num_points: int = 0):
        super().__init__(message)
        self.num_points = num_points
