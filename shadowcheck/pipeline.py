"""
Shadow Compliance Pipeline Orchestrator

Runs one compliance check end to end:

  1. Validate site and zoning inputs
  2. Resolve regulation thresholds (zone + FAR + overrides + neighbours)
  3. Generate the building massing
  4. Precompute the sun path for the reference day
  5. Simulate shadow hours over the sample grid
  6. Derive design recommendations

ComplianceSession adds per-project supersession and the optional quick
re-check on top of the pipeline.
"""

import json
import math
import os
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional

import shapely
from loguru import logger

from .cache import ResultCache, MemoryResultCache, DiskResultCache, compute_fingerprint, engine_settings
from .config import get_config, validate_config, EngineConfig
from .exceptions import ShadowCheckError, InputError
from .geometry import Polygon
from .models import (
    SiteLocation, BuildingParameters, BuildingMassing, RegulationOverrides, NeighborParcel,
    ComplianceResult, ComplianceStatus, ZoneRegulation, ZoneCategory
)
from .analysis import (
    SolarEphemerisCalculator, EphemerisTable, BuildingMassingGenerator, ZoningRegulationResolver,
    ShadowComplianceSimulator, RecommendationEngine, most_recent_winter_solstice
)


class ShadowCompliancePipeline:
    """
    Main pipeline to check a building against the shadow regulation

    Usage:
        pipeline = ShadowCompliancePipeline()
        result = pipeline.check_compliance(site, building, "residential_1", 200)
        pipeline.save(result, "output/shadow.json")
    """

    def __init__(self, config: Optional[EngineConfig] = None, cache: Optional[ResultCache] = None):
        self.config = config or get_config()
        validate_config(self.config)
        self.settings = engine_settings(self.config)

        if cache is None and self.config.cache_dir:
            cache = DiskResultCache(self.config.cache_dir)
        self.cache = cache

        self.ephemeris_calculator = SolarEphemerisCalculator()
        self.massing_generator = BuildingMassingGenerator(self.config.massing)
        self.regulation_resolver = ZoningRegulationResolver(self.config.regulation)
        self.simulator = ShadowComplianceSimulator(self.config.simulation)
        self.recommendation_engine = RecommendationEngine(self.config.regulation)

    def check_compliance(
        self,
        site: SiteLocation,
        building: BuildingParameters,
        zoning_classification: str,
        floor_area_ratio: float,
        overrides: Optional[RegulationOverrides] = None,
        reference_date: Optional[date] = None,
        neighbor_parcels: Optional[List[NeighborParcel]] = None
    ) -> ComplianceResult:
        """
        Run the complete compliance check

        Args:
            site: Site location; latitude and longitude are required
            building: Building parameters
            zoning_classification: Zoning string (English or Japanese)
            floor_area_ratio: Designated FAR in percent
            overrides: Previously confirmed regulation values
            reference_date: Defaults to the most recent winter solstice
            neighbor_parcels: Adjacent parcels for commercial/industrial zones

        Returns:
            ComplianceResult; status is error if the engine failed internally

        Raises:
            InputError: missing or invalid coordinates or FAR
            InvalidParametersError: building parameters cannot be massed
        """
        self.validate_inputs(site, floor_area_ratio)
        reference_date = reference_date or most_recent_winter_solstice()

        fingerprint = compute_fingerprint(
            site, building, zoning_classification, floor_area_ratio,
            overrides, neighbor_parcels, reference_date, self.settings
        )
        if self.cache is not None:
            cached = self.cache.get(fingerprint)
            if cached is not None:
                logger.info(f"Using cached compliance result {fingerprint[:8]}")
                return cached

        logger.info(
            f"Starting shadow compliance check at ({site.latitude}, {site.longitude}) "
            f"for {building.usage.value}, {building.floors} floors, zone '{zoning_classification}'"
        )

        regulation = None
        try:
            # ============================================================
            # STAGE 1: Resolve regulation
            # ============================================================
            resolution = self.regulation_resolver.resolve(
                zoning_classification, floor_area_ratio, overrides, neighbor_parcels
            )
            regulation = resolution.regulation

            # ============================================================
            # STAGE 2: Massing
            # ============================================================
            massing = self.generate_massing(building, site)

            # ============================================================
            # STAGE 3: Sun path
            # ============================================================
            ephemeris = self.sun_path(site, reference_date)

            # ============================================================
            # STAGE 4: Shadow simulation
            # ============================================================
            result = self.simulator.simulate(massing, ephemeris, regulation)

            # ============================================================
            # STAGE 5: Recommendations
            # ============================================================
            recommendations = self.recommendation_engine.generate(result, massing)

        except ShadowCheckError:
            raise
        except Exception as e:
            logger.exception(f"Shadow compliance check failed: {e}")
            return self._error_result(zoning_classification, regulation, str(e), reference_date, fingerprint)

        result = result.model_copy(update={
            "resolution": resolution,
            "reference_date": reference_date,
            "fingerprint": fingerprint,
            "recommendations": recommendations,
        })

        logger.info(
            f"Compliance check complete: {result.status.value}, "
            f"rate {result.compliance_rate:.1f}%, {len(recommendations)} recommendations"
        )

        if self.cache is not None:
            self.cache.put(fingerprint, result)
        return result

    def validate_inputs(self, site: SiteLocation, floor_area_ratio: float) -> None:
        errors = []
        if site is None or site.latitude is None or site.longitude is None:
            errors.append("site latitude and longitude are required")
        else:
            if not math.isfinite(site.latitude) or not -90 <= site.latitude <= 90:
                errors.append(f"latitude must be within [-90, 90], got {site.latitude}")
            if not math.isfinite(site.longitude) or not -180 <= site.longitude <= 180:
                errors.append(f"longitude must be within [-180, 180], got {site.longitude}")
        if floor_area_ratio is None:
            errors.append("floor area ratio is required")
        elif not math.isfinite(floor_area_ratio) or floor_area_ratio <= 0:
            errors.append(f"floor area ratio must be positive, got {floor_area_ratio}")

        if errors:
            raise InputError("Invalid compliance inputs: " + "; ".join(errors))

    def generate_massing(self, building: BuildingParameters, site: Optional[SiteLocation] = None) -> BuildingMassing:
        """Massing for rendering consumers; raises InvalidParametersError"""
        return self.massing_generator.generate(building, site)

    def sun_path(self, site: SiteLocation, reference_date: Optional[date] = None) -> EphemerisTable:
        """Sun positions across the reference day at the site"""
        reference_date = reference_date or most_recent_winter_solstice()
        return self.ephemeris_calculator.build_table(
            site.latitude, site.longitude, reference_date, self.config.simulation.time_step_hours
        )

    def save(self, result: ComplianceResult, output_path: str) -> str:
        """Save compliance result to JSON file"""
        os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)

        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(result.model_dump(mode="json"), f, indent=2, ensure_ascii=False)

        logger.info(f"Saved compliance result to {output_path}")
        return output_path

    def _error_result(
        self,
        zone: str,
        regulation: Optional[ZoneRegulation],
        reason: str,
        reference_date: date,
        fingerprint: str
    ) -> ComplianceResult:
        if regulation is None:
            regulation = ZoneRegulation(zone=zone, category=ZoneCategory.UNKNOWN, is_regulated=False)
        return ComplianceResult(
            status=ComplianceStatus.ERROR,
            is_compliant=False,
            regulation=regulation,
            reference_date=reference_date,
            fingerprint=fingerprint,
            compliance_rate=0.0,
            error_reason=reason
        )


# ============================================================
# Session: supersession and quick re-check
# ============================================================

@dataclass
class CheckRequest:
    """One submitted check; only the latest request per project is current"""
    project_key: str
    fingerprint: str
    site: SiteLocation
    building: BuildingParameters
    zoning_classification: str
    floor_area_ratio: float
    reference_date: date
    overrides: Optional[RegulationOverrides] = None
    neighbor_parcels: List[NeighborParcel] = field(default_factory=list)

    def same_context(self, other: "CheckRequest") -> bool:
        """Identical inputs apart from the building"""
        return (
            self.site == other.site
            and self.zoning_classification == other.zoning_classification
            and self.floor_area_ratio == other.floor_area_ratio
            and self.reference_date == other.reference_date
            and self.overrides == other.overrides
            and self.neighbor_parcels == other.neighbor_parcels
        )


class ComplianceSession:
    """
    Track the latest check per project

    A check submitted with begin() is superseded as soon as a newer
    check for the same project is begun; its result is then discarded
    by complete() and its cache entry invalidated.
    """

    def __init__(self, pipeline: Optional[ShadowCompliancePipeline] = None):
        self.pipeline = pipeline or ShadowCompliancePipeline(cache=MemoryResultCache())
        if self.pipeline.cache is None:
            self.pipeline.cache = MemoryResultCache()
        self._latest: Dict[str, str] = {}
        self._current: Dict[str, ComplianceResult] = {}
        self._current_request: Dict[str, CheckRequest] = {}
        self._current_massing: Dict[str, BuildingMassing] = {}

    @property
    def cache(self) -> ResultCache:
        return self.pipeline.cache

    def begin(
        self,
        project_key: str,
        site: SiteLocation,
        building: BuildingParameters,
        zoning_classification: str,
        floor_area_ratio: float,
        overrides: Optional[RegulationOverrides] = None,
        reference_date: Optional[date] = None,
        neighbor_parcels: Optional[List[NeighborParcel]] = None
    ) -> CheckRequest:
        """Register a new check as the project's latest"""
        reference_date = reference_date or most_recent_winter_solstice()
        fingerprint = compute_fingerprint(
            site, building, zoning_classification, floor_area_ratio,
            overrides, neighbor_parcels, reference_date, self.pipeline.settings
        )

        previous = self._latest.get(project_key)
        if previous is not None and previous != fingerprint:
            logger.info(f"Project {project_key}: check {previous[:8]} superseded by {fingerprint[:8]}")
            self.cache.invalidate(previous)
        self._latest[project_key] = fingerprint

        return CheckRequest(
            project_key=project_key,
            fingerprint=fingerprint,
            site=site,
            building=building,
            zoning_classification=zoning_classification,
            floor_area_ratio=floor_area_ratio,
            reference_date=reference_date,
            overrides=overrides,
            neighbor_parcels=list(neighbor_parcels or [])
        )

    def complete(self, request: CheckRequest) -> Optional[ComplianceResult]:
        """
        Run a begun check

        Returns None when the request was superseded before it finished.
        """
        if not self.is_current(request):
            logger.info(f"Project {request.project_key}: skipping superseded check {request.fingerprint[:8]}")
            return None

        massing = None
        result = None
        if self.pipeline.config.enable_quick_recheck:
            massing = self.pipeline.generate_massing(request.building, request.site)
            result = self._quick_recheck(request, massing)

        if result is None:
            result = self.pipeline.check_compliance(
                request.site, request.building, request.zoning_classification, request.floor_area_ratio,
                overrides=request.overrides,
                reference_date=request.reference_date,
                neighbor_parcels=request.neighbor_parcels
            )

        if not self.is_current(request):
            logger.info(f"Project {request.project_key}: discarding stale result {request.fingerprint[:8]}")
            self.cache.invalidate(request.fingerprint)
            return None

        if result.status != ComplianceStatus.ERROR:
            self._current[request.project_key] = result
            self._current_request[request.project_key] = request
            if massing is None:
                massing = self.pipeline.generate_massing(request.building, request.site)
            self._current_massing[request.project_key] = massing
        return result

    def check(self, project_key: str, *args, **kwargs) -> Optional[ComplianceResult]:
        """begin() and complete() in one call"""
        return self.complete(self.begin(project_key, *args, **kwargs))

    def is_current(self, request: CheckRequest) -> bool:
        return self._latest.get(request.project_key) == request.fingerprint

    def current(self, project_key: str) -> Optional[ComplianceResult]:
        return self._current.get(project_key)

    def _quick_recheck(self, request: CheckRequest, massing: BuildingMassing) -> Optional[ComplianceResult]:
        """Reuse the previous compliant result when the building did not grow"""
        previous = self._current.get(request.project_key)
        previous_request = self._current_request.get(request.project_key)
        previous_massing = self._current_massing.get(request.project_key)
        if previous is None or previous_request is None or previous_massing is None:
            return None
        if not previous.is_compliant or not request.same_context(previous_request):
            return None

        parapet = self.pipeline.config.simulation.balcony_parapet_height_m
        if not _massing_within(massing, previous_massing, parapet):
            return None

        logger.info(
            f"Project {request.project_key}: massing not larger than compliant check "
            f"{previous.fingerprint[:8] if previous.fingerprint else ''}, reusing result"
        )
        return previous.model_copy(update={"fingerprint": request.fingerprint, "quick_recheck": True})


def _covers(outer: List[Polygon], inner: List[Polygon]) -> bool:
    if not inner:
        return True
    if not outer:
        return False
    region = shapely.union_all([p.to_shapely() for p in outer]).buffer(1e-6)
    return region.covers(shapely.union_all([p.to_shapely() for p in inner]))


def _massing_within(massing: BuildingMassing, previous: BuildingMassing, parapet_height_m: float) -> bool:
    """True when every casting element of massing fits inside the previous massing"""
    if massing.usage != previous.usage or massing.shape != previous.shape:
        return False
    if massing.total_height_m > previous.total_height_m or massing.floor_count > previous.floor_count:
        return False

    previous_floors = {f.level: f for f in previous.floors}
    for floor in massing.floors:
        before = previous_floors[floor.level]
        if floor.top_m > before.top_m + 1e-6 or not _covers([before.footprint], [floor.footprint]):
            return False

    # A balcony may sit under an earlier balcony or inside an earlier floor at least as tall
    for balcony in massing.balconies:
        top = balcony.elevation_m + parapet_height_m
        cover = [b.polygon for b in previous.balconies if b.elevation_m >= balcony.elevation_m - 1e-6]
        cover += [f.footprint for f in previous.floors if f.top_m >= top - 1e-6 and f.elevation_m <= top]
        if not _covers(cover, [balcony.polygon]):
            return False
    return True
