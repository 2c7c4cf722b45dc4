"""
Tests for the shadow compliance simulation.

Covers:
- Sample grid construction and distance bands
- Casting elements
- Shadow hours, compliance aggregates and time series
- Geometry statistics
- Determinism
"""

import numpy as np
import pytest

from shadowcheck.analysis import ShadowComplianceSimulator, BuildingMassingGenerator, SolarEphemerisCalculator
from shadowcheck.config import SimulationConfig
from shadowcheck.models import (
    ComplianceStatus, DistanceBand, BuildingParameters, UsageCategory, ZoneRegulation, ZoneCategory
)


@pytest.fixture
def simulator():
    return ShadowComplianceSimulator(SimulationConfig())


@pytest.fixture
def coarse_simulator():
    return ShadowComplianceSimulator(SimulationConfig(grid_cell_size_m=2.0))


class TestSampleGrid:

    def test_points_exclude_footprint_and_respect_radius(self, simulator, box_massing):
        grid = simulator.build_sample_grid(box_massing(20.0, 10.0, 12.0))
        inside = (np.abs(grid.xs) <= 10.0) & (np.abs(grid.ys) <= 5.0)
        assert not inside.any()
        assert grid.distances.max() <= 50.0
        assert grid.distances.min() > 0.0

    def test_points_on_cell_multiples(self, simulator, box_massing):
        grid = simulator.build_sample_grid(box_massing(20.0, 10.0, 12.0))
        assert np.allclose(grid.xs, np.round(grid.xs))
        assert np.allclose(grid.ys, np.round(grid.ys))

    def test_band_boundary_is_near(self, simulator):
        assert simulator.classify_band(10.0) == DistanceBand.NEAR
        assert simulator.classify_band(10.000001) == DistanceBand.FAR
        assert simulator.classify_band(0.5) == DistanceBand.NEAR


class TestCastingElements:

    def test_floor_slices_above_measurement_plane(self, simulator, box_massing):
        elements = simulator.casting_elements(box_massing(20.0, 10.0, 9.0, floors=3), 4.0)
        heights = sorted(e.cast_height_m for e in elements)
        # Floors 0-3, 3-6, 6-9 sliced every 2m; 2m is below the 4m plane
        assert heights == pytest.approx([5.0, 6.0, 8.0, 9.0])
        assert {e.kind for e in elements} == {"floor"}

    def test_setback_and_balcony_elements(self, simulator):
        massing = BuildingMassingGenerator().generate(BuildingParameters(
            usage=UsageCategory.RESIDENTIAL_MULTI, floors=6, building_area_sqm=500.0,
            max_height_m=18.1, units=10
        ))
        elements = simulator.casting_elements(massing, 1.5)
        kinds = {e.kind for e in elements}
        assert kinds == {"floor", "setback", "balcony"}
        balcony_heights = [e.cast_height_m for e in elements if e.kind == "balcony"]
        assert min(balcony_heights) == pytest.approx(massing.floors[1].elevation_m + 1.1)


class TestSimulation:

    def test_single_floor_below_measurement_height(self, simulator, box_massing, tokyo_ephemeris):
        regulation = ZoneRegulation(
            zone="test", category=ZoneCategory.RESIDENTIAL_1, target_height_m=0.0,
            measurement_height_m=4.0, near_limit_hours=4.0, far_limit_hours=2.5
        )
        result = simulator.simulate(box_massing(20.0, 10.0, 3.0), tokyo_ephemeris, regulation)
        assert result.status == ComplianceStatus.COMPLIANT
        assert result.is_compliant
        assert result.sample_points
        assert all(p.shadow_hours == 0 for p in result.sample_points)
        assert result.compliance_rate == 100.0
        assert result.peak_violation_time is None

    def test_tall_box_violates_north_of_building(self, simulator, box_massing, tokyo_ephemeris,
                                                 low_rise_regulation):
        result = simulator.simulate(box_massing(30.0, 20.0, 12.0, floors=4), tokyo_ephemeris, low_rise_regulation)
        assert result.status == ComplianceStatus.NON_COMPLIANT
        assert not result.is_compliant
        assert 0 <= result.compliance_rate < 100

        north = next(p for p in result.sample_points if p.x == 0.0 and p.y == 11.0)
        south = next(p for p in result.sample_points if p.x == 0.0 and p.y == -11.0)
        assert north.shadow_hours > 3.0
        assert not north.is_compliant
        assert north.violation_hours == pytest.approx(north.shadow_hours - 3.0)
        assert south.shadow_hours == 0.0

    def test_point_at_exactly_ten_meters_uses_near_limit(self, simulator, box_massing, tokyo_ephemeris,
                                                         low_rise_regulation):
        result = simulator.simulate(box_massing(20.0, 10.0, 12.0), tokyo_ephemeris, low_rise_regulation)
        point = next(p for p in result.sample_points if p.x == 0.0 and p.y == 15.0)
        assert point.distance_to_boundary_m == pytest.approx(10.0)
        assert point.band == DistanceBand.NEAR
        assert point.applicable_limit_hours == 3.0

    def test_points_beyond_max_shadow_length_are_unshadowed(self, simulator, box_massing, tokyo_ephemeris,
                                                            low_rise_regulation):
        result = simulator.simulate(box_massing(20.0, 10.0, 3.0), tokyo_ephemeris, low_rise_regulation)
        reach = tokyo_ephemeris.max_shadow_length(3.0 - 1.5, 8, 16)
        far_points = [p for p in result.sample_points if p.distance_to_boundary_m > reach]
        assert far_points
        assert all(p.shadow_hours == 0 for p in far_points)
        assert any(p.shadow_hours > 0 for p in result.sample_points)

    def test_aggregates_are_consistent(self, coarse_simulator, box_massing, tokyo_ephemeris, low_rise_regulation):
        result = coarse_simulator.simulate(box_massing(30.0, 20.0, 12.0, floors=4), tokyo_ephemeris,
                                           low_rise_regulation)
        violating = result.violating_points
        total = len(result.sample_points)
        assert result.compliance_rate == pytest.approx(100.0 * (total - len(violating)) / total)
        assert result.violation_area_sqm == pytest.approx(len(violating) * 4.0)
        assert result.max_violation_hours == pytest.approx(max(p.violation_hours for p in violating))
        for p in result.sample_points:
            assert len(p.shadow_flags) == 17
            assert p.shadow_hours == pytest.approx(sum(p.shadow_flags) * 0.5)
            assert p.is_compliant == (p.shadow_hours <= p.applicable_limit_hours)

    def test_time_series(self, coarse_simulator, box_massing, tokyo_ephemeris, low_rise_regulation):
        result = coarse_simulator.simulate(box_massing(30.0, 20.0, 12.0, floors=4), tokyo_ephemeris,
                                           low_rise_regulation)
        hours = [s.hour for s in result.time_series]
        assert hours == [8.0 + 0.5 * i for i in range(17)]
        counts = [s.violation_points for s in result.time_series]
        assert result.peak_violation_time == hours[counts.index(max(counts))]
        assert result.minimum_compliance_time == hours[counts.index(min(counts))]

    def test_shadow_map_matches_points(self, coarse_simulator, box_massing, tokyo_ephemeris, low_rise_regulation):
        result = coarse_simulator.simulate(box_massing(30.0, 20.0, 12.0, floors=4), tokyo_ephemeris,
                                           low_rise_regulation)
        shadow_map = result.shadow_map
        for p in result.sample_points[::50]:
            row = int(round((p.y - shadow_map.origin_y) / shadow_map.cell_size_m))
            col = int(round((p.x - shadow_map.origin_x) / shadow_map.cell_size_m))
            assert shadow_map.hours[row][col] == p.shadow_hours

    def test_deterministic(self, coarse_simulator, box_massing, tokyo_ephemeris, low_rise_regulation):
        massing = box_massing(30.0, 20.0, 12.0, floors=4)
        first = coarse_simulator.simulate(massing, tokyo_ephemeris, low_rise_regulation)
        second = coarse_simulator.simulate(massing, tokyo_ephemeris, low_rise_regulation)
        assert first.model_dump() == second.model_dump()

    def test_not_subject_returns_not_applicable(self, simulator, box_massing, tokyo_ephemeris):
        regulation = ZoneRegulation(
            zone="test", category=ZoneCategory.RESIDENTIAL_1, target_height_m=10.0,
            measurement_height_m=4.0, near_limit_hours=4.0, far_limit_hours=2.5
        )
        result = simulator.simulate(box_massing(20.0, 10.0, 9.0, floors=3), tokyo_ephemeris, regulation)
        assert result.status == ComplianceStatus.NOT_APPLICABLE
        assert result.is_compliant
        assert result.sample_points == []
        assert result.recommendations == []

    def test_sun_below_horizon_all_day(self, coarse_simulator, box_massing, solstice, low_rise_regulation):
        polar = SolarEphemerisCalculator().build_table(80.0, 15.0, solstice)
        result = coarse_simulator.simulate(box_massing(30.0, 20.0, 12.0, floors=4), polar, low_rise_regulation)
        assert result.sample_points
        assert all(p.shadow_hours == 0.0 for p in result.sample_points)
        assert result.status == ComplianceStatus.COMPLIANT
        assert result.compliance_rate == 100.0
        assert result.max_violation_hours == 0.0
        assert result.peak_violation_time is None

    def test_empty_sample_grid_is_compliant(self, box_massing, tokyo_ephemeris, low_rise_regulation):
        sparse = ShadowComplianceSimulator(SimulationConfig(grid_cell_size_m=7.0, sample_radius_m=0.5))
        result = sparse.simulate(box_massing(20.0, 10.0, 12.0), tokyo_ephemeris, low_rise_regulation)
        assert result.sample_points == []
        assert result.status == ComplianceStatus.COMPLIANT
        assert result.is_compliant
        assert result.compliance_rate == 100.0
        assert result.max_violation_hours == 0.0
        assert result.violation_area_sqm == 0.0
        assert all(s.violation_points == 0 for s in result.time_series)


class TestGeometryStats:

    def test_critical_floors_and_volume(self, simulator, box_massing):
        stats = simulator.analyze_geometry(box_massing(20.0, 10.0, 12.0, floors=4))
        assert stats.critical_floors == [4, 3, 2]
        assert stats.effective_footprint_sqm == pytest.approx(200.0)
        assert stats.shadow_casting_volume_m3 == pytest.approx(2400.0)
