"""
Centralized settings and path configuration for the quote engine.
"""
import os
from pathlib import Path
from dataclasses import dataclass
from typing import Optional


DATA_DIR_ENV = 'QUOTE_ENGINE_DATA_DIR'


def get_project_root() -> Path:
    """Get the project root directory (where pyproject.toml lives)."""
    current = Path(__file__).resolve()
    for parent in current.parents:
        if (parent / 'pyproject.toml').exists():
            return parent
    # Fallback to 3 levels up from this file
    return Path(__file__).resolve().parent.parent.parent.parent


def get_bundled_data_dir() -> Path:
    """Catalog files shipped with the package."""
    return Path(__file__).resolve().parent.parent / 'data' / 'seed'


@dataclass
class Settings:
    """Application settings with sensible defaults."""

    # Project paths
    project_root: Path
    data_dir: Path

    # Catalog files
    plans_csv: Path
    insurance_csv: Path
    service_plans_csv: Path
    devices_json: Path
    promotions_json: Path
    guidance_json: Path

    # Store-level discount settings
    autopay_discount: float = 5.0  # dollars per line
    insider_percent: float = 20.0
    third_line_free_enabled: bool = True

    # New quotes start at this tax rate (percent)
    default_tax_rate: float = 6.0

    @classmethod
    def load(cls, project_root: Optional[Path] = None, data_dir: Optional[Path] = None) -> 'Settings':
        """Load settings, letting QUOTE_ENGINE_DATA_DIR point at another catalog."""
        root = project_root or get_project_root()
        env_dir = os.environ.get(DATA_DIR_ENV)
        data = Path(data_dir or env_dir or get_bundled_data_dir())

        return cls(
            project_root=root,
            data_dir=data,
            plans_csv=data / 'plans.csv',
            insurance_csv=data / 'insurance_plans.csv',
            service_plans_csv=data / 'service_plans.csv',
            devices_json=data / 'devices.json',
            promotions_json=data / 'promotions.json',
            guidance_json=data / 'guidance.json',
        )


# Default settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings
