"""
Compliance result caching

Results are keyed by a fingerprint of every input that affects them,
including the engine settings and package version they were computed with.
"""

import os
import json
import hashlib
from dataclasses import asdict
from datetime import date
from typing import Any, Dict, List, Optional

from loguru import logger

from . import __version__
from .config import EngineConfig
from .models import (
    ComplianceResult, SiteLocation, BuildingParameters, RegulationOverrides, NeighborParcel
)


def engine_settings(config: EngineConfig) -> Dict[str, Any]:
    """Settings that change a result; cache location and session policy are excluded"""
    return {
        "version": __version__,
        "simulation": asdict(config.simulation),
        "massing": asdict(config.massing),
        "regulation": asdict(config.regulation),
    }


def compute_fingerprint(
    site: SiteLocation,
    building: BuildingParameters,
    zoning_classification: str,
    floor_area_ratio: float,
    overrides: Optional[RegulationOverrides] = None,
    neighbor_parcels: Optional[List[NeighborParcel]] = None,
    reference_date: Optional[date] = None,
    settings: Optional[Dict[str, Any]] = None
) -> str:
    """Stable hash of the compliance inputs"""
    payload = {
        "site": site.model_dump(mode="json", exclude={"address"}),
        "building": building.model_dump(mode="json"),
        "zone": zoning_classification,
        "far": floor_area_ratio,
        "overrides": overrides.model_dump(mode="json") if overrides else None,
        "neighbors": [n.model_dump(mode="json") for n in (neighbor_parcels or [])],
        "reference_date": reference_date.isoformat() if reference_date else None,
        "settings": settings,
    }
    cache_key = json.dumps(payload, sort_keys=True, ensure_ascii=False)
    return hashlib.md5(cache_key.encode()).hexdigest()


class ResultCache:
    """Interface for fingerprint-keyed result storage"""

    def get(self, fingerprint: str) -> Optional[ComplianceResult]:
        raise NotImplementedError

    def put(self, fingerprint: str, result: ComplianceResult) -> None:
        raise NotImplementedError

    def invalidate(self, fingerprint: str) -> None:
        raise NotImplementedError


class MemoryResultCache(ResultCache):
    """In-process cache; entries are stored and returned as deep copies"""

    def __init__(self):
        self._results: Dict[str, ComplianceResult] = {}

    def get(self, fingerprint: str) -> Optional[ComplianceResult]:
        result = self._results.get(fingerprint)
        return result.model_copy(deep=True) if result is not None else None

    def put(self, fingerprint: str, result: ComplianceResult) -> None:
        self._results[fingerprint] = result.model_copy(deep=True)

    def invalidate(self, fingerprint: str) -> None:
        self._results.pop(fingerprint, None)

    def __len__(self) -> int:
        return len(self._results)


class DiskResultCache(ResultCache):
    """Handles caching of compliance results to disk as JSON"""

    def __init__(self, cache_dir: str):
        self.cache_dir = cache_dir

    def get_cache_path(self, fingerprint: str) -> str:
        return os.path.join(self.cache_dir, f"shadow_{fingerprint}.json")

    def get(self, fingerprint: str) -> Optional[ComplianceResult]:
        """Load a result from cache if it exists"""
        cache_path = self.get_cache_path(fingerprint)
        if not os.path.exists(cache_path):
            return None
        try:
            with open(cache_path, 'r', encoding='utf-8') as f:
                result = ComplianceResult.model_validate_json(f.read())
            logger.info(f"Loaded compliance result from cache: {cache_path}")
            return result
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to load cache {cache_path}: {e}")
            return None

    def put(self, fingerprint: str, result: ComplianceResult) -> None:
        """Save a result to cache"""
        cache_path = self.get_cache_path(fingerprint)
        try:
            os.makedirs(self.cache_dir, exist_ok=True)
            with open(cache_path, 'w', encoding='utf-8') as f:
                f.write(result.model_dump_json())
            logger.info(f"Saved compliance result to cache: {cache_path}")
        except OSError as e:
            logger.warning(f"Failed to save cache {cache_path}: {e}")

    def invalidate(self, fingerprint: str) -> None:
        cache_path = self.get_cache_path(fingerprint)
        if os.path.exists(cache_path):
            os.remove(cache_path)
            logger.debug(f"Removed cached result {cache_path}")
