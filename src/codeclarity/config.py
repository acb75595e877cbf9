"""YAML config loader — reads codeclarity.yml into AppConfig."""

from pathlib import Path

import yaml

from codeclarity.schemas.config import AppConfig


def load_config(path: str | Path) -> AppConfig:
    """Load and validate a config file.

    Raises ``FileNotFoundError`` if the path doesn't exist and
    ``pydantic.ValidationError`` if the YAML content is invalid.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    raw = yaml.safe_load(path.read_text())
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValueError(f"Config file must be a YAML mapping, got {type(raw).__name__}")

    # A formats list with only commented-out items loads as None; fall back to the default.
    if "formats" in raw:
        if isinstance(raw["formats"], list):
            raw["formats"] = [item for item in raw["formats"] if item]
        if not raw["formats"]:
            del raw["formats"]

    return AppConfig(**raw)
