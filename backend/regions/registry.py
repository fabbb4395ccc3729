from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path

import yaml

from layers.loaders import load_geojson_areas
from layers.types import AreaLayer
from regions.types import RegionConfig

logger = logging.getLogger(__name__)

DEFAULT_REGION_ID = "halifax"

# backend/regions/registry.py -> repo root
_REPO_ROOT = Path(__file__).resolve().parents[2]


def _read_region(path: Path) -> RegionConfig:
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid region yaml root: {path}")
    return RegionConfig.model_validate(data)


@lru_cache(maxsize=1)
def get_registry() -> dict[str, RegionConfig]:
    """
    Enabled regions from `regions/<id>/region.yaml`, keyed by id in path order.
    """
    out: dict[str, RegionConfig] = {}
    for path in sorted((_REPO_ROOT / "regions").glob("*/region.yaml")):
        cfg = _read_region(path)
        if cfg.enabled:
            out[cfg.id] = cfg
    logger.debug("Discovered regions: %s", ", ".join(out) or "none")
    return out


def list_regions() -> list[RegionConfig]:
    return list(get_registry().values())


def get_region(region_id: str | None) -> RegionConfig:
    """
    Region by id; missing or unknown ids resolve to `CATCHMENT_REGION`
    (default "halifax"), or the first region found if that one is absent too.
    """
    reg = get_registry()
    if not reg:
        raise RuntimeError("No regions found under regions/*/region.yaml")

    rid = (region_id or "").strip()
    if rid in reg:
        return reg[rid]
    preferred = (os.getenv("CATCHMENT_REGION") or DEFAULT_REGION_ID).strip()
    return reg.get(preferred) or next(iter(reg.values()))


@lru_cache(maxsize=4)
def load_region_areas(region_id: str | None) -> AreaLayer:
    """
    Load (once per process) the candidate areas of a region.
    """
    cfg = get_region(region_id)
    path = _REPO_ROOT / cfg.areas.path
    if not path.exists():
        raise FileNotFoundError(f"Region '{cfg.id}' missing file: {cfg.areas.path}")
    features = load_geojson_areas(path)
    logger.info("Region '%s': %d candidate areas", cfg.id, len(features))
    return AreaLayer(
        id=cfg.id,
        title=cfg.areas.title,
        features=features,
        name_keys=tuple(cfg.areas.nameKeys),
    )


def clear_registry_cache() -> None:
    """
    Drop cached region configs and loaded areas (YAML edits are otherwise only picked
    up on restart).
    """
    get_registry.cache_clear()
    load_region_areas.cache_clear()
