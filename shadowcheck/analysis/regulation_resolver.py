"""
Shadow regulation thresholds by zoning classification and floor-area ratio

Decision table follows the Building Standards Act shadow provisions:

  - Low-rise exclusive residential: eave > 7m or 3+ floors, measured at 1.5m
  - Mid/high-rise exclusive residential: height > 10m, measured at 4m
  - Residential / quasi-residential: height > 10m, measured at 4m
  - Commercial / industrial: unregulated unless a regulated residential
    neighbour is supplied, in which case its thresholds are borrowed
"""

import re
import unicodedata
from typing import Dict, List, Optional, Tuple

from loguru import logger

from ..config import get_config, RegulationConfig
from ..models import (
    ZoneCategory, ZoneRegulation, NeighborParcel, RegulationOverrides,
    PrimaryResolution, FallbackResolution, RegulationResolution
)

LOW_RISE_TARGET = "Buildings with eave height over 7m or 3 or more floors above ground"
HEIGHT_TARGET = "Buildings over 10m in height"

# Lookup keys are normalised: NFKC, lower case, separators stripped
ZONE_ALIASES: Dict[str, ZoneCategory] = {
    "lowriseexclusiveresidential1": ZoneCategory.LOW_RISE_EXCLUSIVE_1,
    "lowriseexclusiveresidential": ZoneCategory.LOW_RISE_EXCLUSIVE_1,
    "category1lowriseexclusiveresidential": ZoneCategory.LOW_RISE_EXCLUSIVE_1,
    "第1種低層住居専用地域": ZoneCategory.LOW_RISE_EXCLUSIVE_1,
    "lowriseexclusiveresidential2": ZoneCategory.LOW_RISE_EXCLUSIVE_2,
    "category2lowriseexclusiveresidential": ZoneCategory.LOW_RISE_EXCLUSIVE_2,
    "第2種低層住居専用地域": ZoneCategory.LOW_RISE_EXCLUSIVE_2,
    "ruralresidential": ZoneCategory.RURAL_RESIDENTIAL,
    "田園住居地域": ZoneCategory.RURAL_RESIDENTIAL,
    "midhighriseexclusiveresidential1": ZoneCategory.MID_HIGH_RISE_EXCLUSIVE_1,
    "midhighriseexclusiveresidential": ZoneCategory.MID_HIGH_RISE_EXCLUSIVE_1,
    "category1midhighriseexclusiveresidential": ZoneCategory.MID_HIGH_RISE_EXCLUSIVE_1,
    "第1種中高層住居専用地域": ZoneCategory.MID_HIGH_RISE_EXCLUSIVE_1,
    "midhighriseexclusiveresidential2": ZoneCategory.MID_HIGH_RISE_EXCLUSIVE_2,
    "category2midhighriseexclusiveresidential": ZoneCategory.MID_HIGH_RISE_EXCLUSIVE_2,
    "第2種中高層住居専用地域": ZoneCategory.MID_HIGH_RISE_EXCLUSIVE_2,
    "residential1": ZoneCategory.RESIDENTIAL_1,
    "residential": ZoneCategory.RESIDENTIAL_1,
    "category1residential": ZoneCategory.RESIDENTIAL_1,
    "第1種住居地域": ZoneCategory.RESIDENTIAL_1,
    "residential2": ZoneCategory.RESIDENTIAL_2,
    "category2residential": ZoneCategory.RESIDENTIAL_2,
    "第2種住居地域": ZoneCategory.RESIDENTIAL_2,
    "quasiresidential": ZoneCategory.QUASI_RESIDENTIAL,
    "準住居地域": ZoneCategory.QUASI_RESIDENTIAL,
    "neighborhoodcommercial": ZoneCategory.NEIGHBORHOOD_COMMERCIAL,
    "neighbourhoodcommercial": ZoneCategory.NEIGHBORHOOD_COMMERCIAL,
    "近隣商業地域": ZoneCategory.NEIGHBORHOOD_COMMERCIAL,
    "commercial": ZoneCategory.COMMERCIAL,
    "商業地域": ZoneCategory.COMMERCIAL,
    "quasiindustrial": ZoneCategory.QUASI_INDUSTRIAL,
    "準工業地域": ZoneCategory.QUASI_INDUSTRIAL,
    "industrial": ZoneCategory.INDUSTRIAL,
    "工業地域": ZoneCategory.INDUSTRIAL,
    "exclusiveindustrial": ZoneCategory.EXCLUSIVE_INDUSTRIAL,
    "工業専用地域": ZoneCategory.EXCLUSIVE_INDUSTRIAL,
    "urbanizationcontrol": ZoneCategory.URBANIZATION_CONTROL,
    "urbanizationcontrolarea": ZoneCategory.URBANIZATION_CONTROL,
    "市街化調整区域": ZoneCategory.URBANIZATION_CONTROL,
}

BORROWING_ZONES = (
    ZoneCategory.NEIGHBORHOOD_COMMERCIAL,
    ZoneCategory.COMMERCIAL,
    ZoneCategory.INDUSTRIAL,
    ZoneCategory.EXCLUSIVE_INDUSTRIAL,
)


def normalize_zone(zone: str) -> str:
    """Fold width variants and separators so aliases match"""
    text = unicodedata.normalize("NFKC", zone or "").strip().lower()
    return re.sub(r"[\s_\-/()・]+", "", text)


def classify_zone(zone: str) -> ZoneCategory:
    """Map a zoning string to its category, UNKNOWN when unrecognised"""
    key = normalize_zone(zone)
    if key in ZONE_ALIASES:
        return ZONE_ALIASES[key]
    if key in {c.value.replace("_", "") for c in ZoneCategory}:
        return next(c for c in ZoneCategory if c.value.replace("_", "") == key)
    return ZoneCategory.UNKNOWN


class ZoningRegulationResolver:
    """
    Resolve zone classification + FAR into regulation thresholds

    Preference order: confirmed overrides > decision table (or a borrowed
    neighbour regulation) > conservative low-rise fallback. Fallback values
    are never mixed into a primary result.
    """

    def __init__(self, regulation_config: Optional[RegulationConfig] = None):
        self.reg_config = regulation_config or get_config().regulation

    def resolve(
        self,
        zone: str,
        floor_area_ratio: float,
        overrides: Optional[RegulationOverrides] = None,
        neighbor_parcels: Optional[List[NeighborParcel]] = None
    ) -> RegulationResolution:
        category = classify_zone(zone)
        logger.info(f"Resolving shadow regulation for zone '{zone}' ({category.value}), FAR {floor_area_ratio}%")

        if category == ZoneCategory.UNKNOWN:
            logger.warning(f"Unrecognised zoning '{zone}' - using conservative low-rise thresholds")
            regulation = self._table_regulation(ZoneCategory.LOW_RISE_EXCLUSIVE_1, 0.0, zone)
            regulation = regulation.model_copy(update={
                "category": ZoneCategory.UNKNOWN,
                "degraded_confidence": True,
                "note": "Zone not recognised; most conservative low-rise thresholds applied",
            })
            return FallbackResolution(
                reason=f"unrecognised zoning classification '{zone}'",
                regulation=self._apply_overrides(regulation, overrides)
            )

        if category in BORROWING_ZONES or category == ZoneCategory.URBANIZATION_CONTROL:
            borrowed = None
            if category in BORROWING_ZONES:
                borrowed = self._borrow_from_neighbor(zone, category, neighbor_parcels)
            if borrowed is None:
                return PrimaryResolution(
                    origin="not_regulated",
                    regulation=self._unregulated(zone, category)
                )
            regulation = self._apply_overrides(borrowed, overrides)
            origin = "override" if self._has_overrides(overrides) else "borrowed"
            return PrimaryResolution(origin=origin, regulation=regulation)

        regulation = self._table_regulation(category, floor_area_ratio, zone)
        if self._has_overrides(overrides):
            logger.info("Applying confirmed regulation overrides")
            return PrimaryResolution(origin="override", regulation=self._apply_overrides(regulation, overrides))
        return PrimaryResolution(origin="table", regulation=regulation)

    def _limits(self, category: ZoneCategory, far: float) -> Tuple[float, float, float]:
        """(measurement height, near limit, far limit) for a regulated category"""
        if category in (ZoneCategory.LOW_RISE_EXCLUSIVE_1, ZoneCategory.LOW_RISE_EXCLUSIVE_2):
            return (1.5, 3.0, 2.0) if far <= 100 else (1.5, 4.0, 2.5)
        if category == ZoneCategory.RURAL_RESIDENTIAL:
            return (1.5, 4.0, 2.5)
        if category in (ZoneCategory.MID_HIGH_RISE_EXCLUSIVE_1, ZoneCategory.MID_HIGH_RISE_EXCLUSIVE_2):
            if far <= 150:
                return (4.0, 3.0, 2.0)
            elif far <= 200:
                return (4.0, 4.0, 2.5)
            return (4.0, 5.0, 3.0)
        if category in (ZoneCategory.RESIDENTIAL_1, ZoneCategory.RESIDENTIAL_2, ZoneCategory.QUASI_RESIDENTIAL):
            return (4.0, 4.0, 2.5) if far <= 200 else (4.0, 5.0, 3.0)
        if category == ZoneCategory.QUASI_INDUSTRIAL:
            return (4.0, 5.0, 3.0)
        raise ValueError(f"{category.value} has no shadow regulation table")

    def _table_regulation(self, category: ZoneCategory, far: float, zone_label: str) -> ZoneRegulation:
        measurement, near, far_limit = self._limits(category, far)
        low_rise = category.is_low_rise
        note = None
        if category == ZoneCategory.QUASI_INDUSTRIAL:
            note = "Quasi-industrial shadow rules vary by municipality; confirm locally"
        return ZoneRegulation(
            zone=zone_label,
            category=category,
            is_regulated=True,
            target_height_m=7.0 if low_rise else 10.0,
            target_floors=3 if low_rise else None,
            measurement_height_m=measurement,
            window_start_hour=self.reg_config.window_start_hour,
            window_end_hour=self.reg_config.window_end_hour,
            near_limit_hours=near,
            far_limit_hours=far_limit,
            target_building=LOW_RISE_TARGET if low_rise else HEIGHT_TARGET,
            note=note
        )

    def _unregulated(self, zone: str, category: ZoneCategory) -> ZoneRegulation:
        if category == ZoneCategory.URBANIZATION_CONTROL:
            note = "Urbanization control area: construction is restricted in principle"
        else:
            note = "Not subject to shadow regulation; consideration for adjacent residential zones may apply"
        return ZoneRegulation(
            zone=zone,
            category=category,
            is_regulated=False,
            measurement_height_m=0.0,
            window_start_hour=self.reg_config.window_start_hour,
            window_end_hour=self.reg_config.window_end_hour,
            target_building="Not subject to shadow regulation",
            note=note
        )

    def _borrow_from_neighbor(
        self,
        zone: str,
        category: ZoneCategory,
        neighbor_parcels: Optional[List[NeighborParcel]]
    ) -> Optional[ZoneRegulation]:
        """Adopt the nearest regulated residential neighbour's full threshold set"""
        candidates = [
            n for n in (neighbor_parcels or [])
            if classify_zone(n.zone).is_residential
        ]
        if not candidates:
            return None

        nearest = min(candidates, key=lambda n: n.distance_m)
        neighbor_category = classify_zone(nearest.zone)
        base = self._table_regulation(neighbor_category, nearest.floor_area_ratio, nearest.zone)
        logger.info(
            f"Borrowing regulation from neighbouring {nearest.zone} "
            f"({nearest.distance_m}m away, FAR {nearest.floor_area_ratio}%)"
        )
        return base.model_copy(update={
            "zone": zone,
            "category": category,
            "borrowed_from": nearest.zone,
            "target_building": f"{base.target_building} (adjacent {nearest.zone})",
            "note": f"Thresholds of adjacent {nearest.zone} (about {nearest.distance_m}m) applied",
        })

    @staticmethod
    def _has_overrides(overrides: Optional[RegulationOverrides]) -> bool:
        if overrides is None:
            return False
        return any(v is not None for v in (
            overrides.measurement_height_m, overrides.near_limit_hours, overrides.far_limit_hours
        ))

    @staticmethod
    def _apply_overrides(regulation: ZoneRegulation, overrides: Optional[RegulationOverrides]) -> ZoneRegulation:
        if overrides is None:
            return regulation
        update = {}
        if overrides.measurement_height_m is not None:
            update["measurement_height_m"] = overrides.measurement_height_m
        if overrides.near_limit_hours is not None:
            update["near_limit_hours"] = overrides.near_limit_hours
        if overrides.far_limit_hours is not None:
            update["far_limit_hours"] = overrides.far_limit_hours
        if overrides.target_building:
            update["target_building"] = overrides.target_building
        return regulation.model_copy(update=update) if update else regulation

    @staticmethod
    def is_subject(regulation: ZoneRegulation, height_m: float, floors: int) -> bool:
        """Whether a building triggers the regulation at all"""
        if not regulation.is_regulated:
            return False
        if regulation.target_floors is not None and floors >= regulation.target_floors:
            return True
        return height_m > regulation.target_height_m
