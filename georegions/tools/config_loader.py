"""
Configuration loader for region-building profiles and environment variables.

Profiles live in ``configs/<name>.yaml``. ``REGION_PROFILE`` selects the
profile used when none is named, and ``REGION_CONFIG_DIR`` points the loader
at a different profile directory (e.g. per-deployment overrides).
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml


class ConfigLoader:
    """Load region-building profiles from YAML files and the environment."""

    CONFIG_DIR = Path(__file__).parent.parent.parent / "configs"
    DEFAULT_PROFILE = "default"

    @classmethod
    def config_dir(cls) -> Path:
        override = os.getenv("REGION_CONFIG_DIR")
        return Path(override) if override else cls.CONFIG_DIR

    @classmethod
    def available_profiles(cls) -> List[str]:
        """Names of the profiles in the active config directory."""
        return sorted(f.stem for f in cls.config_dir().glob("*.yaml"))

    @classmethod
    def _read(cls, path: Path) -> Dict[str, Any]:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ValueError(f"{path} must contain a mapping, got {type(data).__name__}")
        return data

    @classmethod
    def load_profile(cls, profile: Union[str, Path] = DEFAULT_PROFILE) -> Dict[str, Any]:
        """
        Load a region-building profile.

        Args:
            profile: Profile name in the config directory (default, detailed,
                proximity) or a path to a YAML file

        Returns:
            Dictionary with configuration values; empty for an empty file

        Raises:
            FileNotFoundError: If the profile doesn't exist
            ValueError: If the file's top level is not a mapping
        """
        path = Path(profile)
        if path.suffix not in (".yaml", ".yml"):
            path = cls.config_dir() / f"{profile}.yaml"

        if not path.exists():
            raise FileNotFoundError(
                f"Profile '{profile}' not found. "
                f"Available profiles: {', '.join(cls.available_profiles())}"
            )
        return cls._read(path)

    @classmethod
    def get_profile_from_env(cls) -> Optional[str]:
        """Get profile name from REGION_PROFILE environment variable."""
        return os.getenv("REGION_PROFILE")

    @classmethod
    def load_default_or_env_profile(cls) -> Dict[str, Any]:
        """Load the REGION_PROFILE profile, or the default profile when unset."""
        return cls.load_profile(cls.get_profile_from_env() or cls.DEFAULT_PROFILE)


def get_config() -> Dict[str, Any]:
    """Convenience function to get current configuration."""
    return ConfigLoader.load_default_or_env_profile()
