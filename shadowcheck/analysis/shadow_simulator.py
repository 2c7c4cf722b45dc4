"""
Shadow compliance simulation over the regulated winter window

Samples a planar grid around the building, integrates shadow hours per
point from every floor slice and balcony above the measurement plane,
and classifies each point against its distance-band limit.
"""

import math
from typing import List, NamedTuple, Optional

import numpy as np
import shapely
from loguru import logger

from ..config import get_config, SimulationConfig
from ..geometry import Polygon
from ..models import (
    BuildingMassing, ZoneRegulation, ComplianceResult, ComplianceStatus,
    ShadowSamplePoint, TimeStepCompliance, GeometryStats, ShadowMap,
    DistanceBand, EphemerisStep
)
from .regulation_resolver import ZoningRegulationResolver
from .solar_ephemeris import EphemerisTable


class CastingElement(NamedTuple):
    kind: str  # floor, setback or balcony
    floor: int
    polygon: Polygon
    cast_height_m: float


class SampleGrid(NamedTuple):
    xs: np.ndarray
    ys: np.ndarray
    distances: np.ndarray
    x_axis: np.ndarray
    y_axis: np.ndarray
    mask: np.ndarray  # kept cells, shape (len(y_axis), len(x_axis))


class ShadowComplianceSimulator:
    """
    Integrate shadow duration per grid point and classify compliance

    Results depend only on the inputs; no state is kept between runs.
    """

    def __init__(self, simulation_config: Optional[SimulationConfig] = None):
        self.config = simulation_config or get_config().simulation

    def simulate(
        self,
        massing: BuildingMassing,
        ephemeris: EphemerisTable,
        regulation: ZoneRegulation
    ) -> ComplianceResult:
        """
        Run the compliance simulation

        Returns a result without recommendations; status is compliant,
        non_compliant or not_applicable.
        """
        if not ZoningRegulationResolver.is_subject(regulation, massing.total_height_m, massing.floor_count):
            logger.info(
                f"Building ({massing.total_height_m:.2f}m, {massing.floor_count} floors) is not subject "
                f"to the {regulation.zone} shadow regulation"
            )
            return self.not_applicable_result(regulation)

        grid = self.build_sample_grid(massing)
        window = ephemeris.window(regulation.window_start_hour, regulation.window_end_hour)
        elements = self.casting_elements(massing, regulation.measurement_height_m)

        logger.info(
            f"Simulating {grid.xs.size} sample points x {len(window)} time steps "
            f"with {len(elements)} casting elements"
        )

        flags = self.shadow_flags(grid.xs, grid.ys, elements, window, regulation.measurement_height_m)
        hours = flags.sum(axis=1) * self.config.time_step_hours

        near = grid.distances <= self.config.near_band_max_distance_m
        limits = np.where(near, regulation.near_limit_hours, regulation.far_limit_hours)
        compliant = hours <= limits
        violation = np.maximum(hours - limits, 0.0)

        points = [
            ShadowSamplePoint(
                x=float(grid.xs[i]),
                y=float(grid.ys[i]),
                distance_to_boundary_m=float(grid.distances[i]),
                shadow_flags=flags[i].tolist(),
                shadow_hours=float(hours[i]),
                band=DistanceBand.NEAR if near[i] else DistanceBand.FAR,
                applicable_limit_hours=float(limits[i]),
                is_compliant=bool(compliant[i]),
                violation_hours=float(violation[i])
            )
            for i in range(grid.xs.size)
        ]

        total = len(points)
        violating = int((~compliant).sum())
        compliance_rate = 100.0 * (total - violating) / total if total else 100.0
        max_violation = float(violation.max()) if total else 0.0
        cell_area = self.config.grid_cell_size_m ** 2

        time_series = self.analyze_time_series(flags, compliant, window)
        peak_time, best_time = self._extreme_times(time_series)

        if total == 0:
            logger.warning("Sample grid is empty - treating as trivially compliant")

        logger.info(
            f"Shadow simulation: {total} points, {violating} violating, "
            f"compliance {compliance_rate:.1f}%, max violation {max_violation:.1f}h"
        )

        is_compliant = violating == 0
        return ComplianceResult(
            status=ComplianceStatus.COMPLIANT if is_compliant else ComplianceStatus.NON_COMPLIANT,
            is_compliant=is_compliant,
            regulation=regulation,
            sample_points=points,
            time_series=time_series,
            peak_violation_time=peak_time,
            minimum_compliance_time=best_time,
            geometry_stats=self.analyze_geometry(massing),
            shadow_map=self._shadow_map(grid, hours),
            compliance_rate=compliance_rate,
            max_violation_hours=max_violation,
            violation_area_sqm=violating * cell_area
        )

    def not_applicable_result(self, regulation: ZoneRegulation) -> ComplianceResult:
        return ComplianceResult(
            status=ComplianceStatus.NOT_APPLICABLE,
            is_compliant=True,
            regulation=regulation,
            compliance_rate=100.0
        )

    def classify_band(self, distance_m: float) -> DistanceBand:
        """Near band is inclusive of its outer edge"""
        if distance_m <= self.config.near_band_max_distance_m:
            return DistanceBand.NEAR
        return DistanceBand.FAR

    def build_sample_grid(self, massing: BuildingMassing) -> SampleGrid:
        """
        Uniform grid on multiples of the cell size covering the massing
        bounds plus the sample radius; points inside or on any floor
        footprint, or beyond the radius, are dropped.
        """
        cell = self.config.grid_cell_size_m
        radius = self.config.sample_radius_m

        outline = shapely.union_all([f.footprint.to_shapely() for f in massing.floors])
        min_x, min_y, max_x, max_y = outline.bounds

        x_axis = np.arange(math.floor((min_x - radius) / cell), math.ceil((max_x + radius) / cell) + 1) * cell
        y_axis = np.arange(math.floor((min_y - radius) / cell), math.ceil((max_y + radius) / cell) + 1) * cell
        gx, gy = np.meshgrid(x_axis, y_axis)
        xs = gx.ravel()
        ys = gy.ravel()

        inside = np.zeros(xs.size, dtype=bool)
        for floor in massing.floors:
            inside |= floor.footprint.contains_points(xs, ys)

        distances = shapely.distance(outline.boundary, shapely.points(xs, ys))
        keep = ~inside & (distances <= radius)

        return SampleGrid(
            xs=xs[keep],
            ys=ys[keep],
            distances=distances[keep],
            x_axis=x_axis,
            y_axis=y_axis,
            mask=keep.reshape(gx.shape)
        )

    def casting_elements(self, massing: BuildingMassing, measurement_height: float) -> List[CastingElement]:
        """
        Horizontal slices that can throw shadow onto the measurement plane

        Each floor is sliced at its top and every slice interval below it;
        slices of setback floors form the setback volume.
        """
        interval = self.config.vertical_slice_interval_m
        elements = []

        for floor in massing.floors:
            kind = "setback" if floor.is_setback else "floor"
            heights = []
            h = floor.elevation_m + interval
            while h < floor.top_m - 1e-9:
                heights.append(h)
                h += interval
            heights.append(floor.top_m)

            for cast_height in heights:
                if cast_height > measurement_height:
                    elements.append(CastingElement(kind, floor.level, floor.footprint, cast_height))

        for balcony in massing.balconies:
            cast_height = balcony.elevation_m + self.config.balcony_parapet_height_m
            if cast_height > measurement_height:
                elements.append(CastingElement("balcony", balcony.floor, balcony.polygon, cast_height))

        return elements

    def shadow_flags(
        self,
        xs: np.ndarray,
        ys: np.ndarray,
        elements: List[CastingElement],
        window: List[EphemerisStep],
        measurement_height: float
    ) -> np.ndarray:
        """(points x steps) array, 1 where the point is in shadow at that step"""
        flags = np.zeros((xs.size, len(window)), dtype=np.int8)
        if xs.size == 0:
            return flags

        for j, step in enumerate(window):
            if step.altitude_deg <= 0:
                # Sun below the horizon casts no shadow
                continue

            tan_alt = math.tan(math.radians(step.altitude_deg))
            az = math.radians(step.azimuth_deg)
            # Shadows fall away from the sun
            ux = -math.sin(az)
            uy = -math.cos(az)

            shadowed = np.zeros(xs.size, dtype=bool)
            for element in elements:
                length = (element.cast_height_m - measurement_height) / tan_alt
                shadow = element.polygon.translate(ux * length, uy * length)

                min_x, min_y, max_x, max_y = shadow.bounds
                candidates = np.flatnonzero(
                    ~shadowed & (xs >= min_x) & (xs <= max_x) & (ys >= min_y) & (ys <= max_y)
                )
                if candidates.size == 0:
                    continue
                hit = shadow.contains_points(xs[candidates], ys[candidates])
                shadowed[candidates[hit]] = True

            flags[:, j] = shadowed
            logger.debug(
                f"{step.hour:05.2f}h alt {step.altitude_deg:.1f} az {step.azimuth_deg:.1f}: "
                f"{int(shadowed.sum())} points shadowed"
            )

        return flags

    def analyze_time_series(
        self,
        flags: np.ndarray,
        compliant: np.ndarray,
        window: List[EphemerisStep]
    ) -> List[TimeStepCompliance]:
        """Count violating points in shadow at each window step"""
        series = []
        for j, step in enumerate(window):
            count = int(((flags[:, j] == 1) & ~compliant).sum()) if flags.size else 0
            series.append(TimeStepCompliance(hour=step.hour, violation_points=count, compliant=count == 0))
        return series

    @staticmethod
    def _extreme_times(series: List[TimeStepCompliance]):
        """(peak violation hour, best compliance hour); first step wins ties"""
        if not series:
            return None, None
        counts = [s.violation_points for s in series]
        peak = series[counts.index(max(counts))].hour if max(counts) > 0 else None
        best = series[counts.index(min(counts))].hour
        return peak, best

    def analyze_geometry(self, massing: BuildingMassing) -> GeometryStats:
        """Footprint, shadow-casting volume and the floors with most shadow impact"""
        volume = sum(f.footprint.area * f.height_m for f in massing.floors)

        impacts = [(f.footprint.area * f.top_m, f.level) for f in massing.floors]
        ranked = sorted(impacts, key=lambda item: (-item[0], item[1]))
        critical = [level for _, level in ranked[:self.config.critical_floor_count]]

        return GeometryStats(
            effective_footprint_sqm=massing.base_footprint.area,
            shadow_casting_volume_m3=volume,
            critical_floors=critical
        )

    def _shadow_map(self, grid: SampleGrid, hours: np.ndarray) -> ShadowMap:
        full = np.zeros(grid.mask.shape, dtype=float)
        full[grid.mask] = hours
        return ShadowMap(
            origin_x=float(grid.x_axis[0]),
            origin_y=float(grid.y_axis[0]),
            cell_size_m=self.config.grid_cell_size_m,
            hours=full.tolist()
        )
