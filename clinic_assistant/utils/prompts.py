"""
Loading of YAML configuration data (prompts, canned texts, clinic info).
Each file is read once and cached.
"""

import yaml
from pathlib import Path
from functools import lru_cache

CONFIG_DIR = Path(__file__).parent.parent.parent / "config"


def _read_yaml(filename: str) -> dict:
    with open(CONFIG_DIR / filename, "r", encoding="utf-8") as f:
        return yaml.safe_load(f)


@lru_cache(maxsize=1)
def load_prompts() -> dict:
    """
    Loads prompts, canned responses and fixed messages from prompts.yaml.

    Returns:
        Dictionary containing all prompt configurations

    Raises:
        FileNotFoundError: If prompts.yaml is not found
    """
    return _read_yaml("prompts.yaml")


@lru_cache(maxsize=1)
def load_clinic_info() -> dict:
    """
    Loads the static clinic data (schedule, location, contact...) from clinic_info.yaml.

    Returns:
        Dictionary keyed by general-info category

    Raises:
        FileNotFoundError: If clinic_info.yaml is not found
    """
    return _read_yaml("clinic_info.yaml")
