"""Test package for geo-regions.

This package contains:
- Unit tests (test_points.py, test_spatial.py, test_balancing.py, test_hulls.py,
  test_climate.py, test_labeling.py, test_config.py)
- Integration tests (test_pipeline.py)
- Test configuration and fake collaborators (conftest.py)
"""
