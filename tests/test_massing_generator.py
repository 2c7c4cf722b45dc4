"""
Tests for procedural massing generation.

Covers:
- Footprint area and shape selection
- Floor height distribution and elevations
- Upper-floor setbacks
- Balcony placement
- Parameter validation
"""

import pytest

from shadowcheck.analysis.massing_generator import BuildingMassingGenerator
from shadowcheck.exceptions import InvalidParametersError
from shadowcheck.models import (
    BuildingParameters, UsageCategory, StructureType, FootprintShape, SiteLocation
)


@pytest.fixture
def generator():
    return BuildingMassingGenerator()


def params(**kwargs):
    defaults = dict(usage=UsageCategory.OFFICE, floors=4, building_area_sqm=500.0, max_height_m=14.0)
    defaults.update(kwargs)
    return BuildingParameters(**defaults)


class TestFootprint:

    @pytest.mark.parametrize("overrides,shape", [
        (dict(), FootprintShape.RECTANGLE),
        (dict(usage=UsageCategory.RESIDENTIAL_MULTI, building_area_sqm=1200.0, units=20), FootprintShape.L_SHAPE),
        (dict(usage=UsageCategory.RESIDENTIAL_MULTI, building_area_sqm=1200.0, units=60), FootprintShape.U_SHAPE),
        (dict(usage=UsageCategory.RESIDENTIAL_MULTI, building_area_sqm=300.0, units=8), FootprintShape.RECTANGLE),
    ])
    def test_area_matches_input(self, generator, overrides, shape):
        p = params(**overrides)
        massing = generator.generate(p)
        assert massing.shape == shape
        assert massing.base_footprint.area == pytest.approx(p.building_area_sqm, rel=1e-6)
        assert massing.base_footprint.is_valid

    def test_office_aspect_ratio(self, generator):
        massing = generator.generate(params())
        assert massing.width_m / massing.depth_m == pytest.approx(1.3)

    def test_footprint_centred_on_origin(self, generator):
        min_x, min_y, max_x, max_y = generator.generate(params()).base_footprint.bounds
        assert min_x == pytest.approx(-max_x)
        assert min_y == pytest.approx(-max_y)

    def test_commercial_grid_is_wider(self, generator):
        office = generator.generate(params())
        shop = generator.generate(params(usage=UsageCategory.COMMERCIAL))
        assert shop.structural_grid.column_spacing_m == pytest.approx(office.structural_grid.column_spacing_m * 1.2)


class TestFloorHeights:

    def test_heights_sum_to_max_height(self, generator):
        massing = generator.generate(params(floors=7, max_height_m=25.0))
        total = massing.foundation.top_m + sum(f.height_m for f in massing.floors)
        assert total == pytest.approx(25.0)
        assert massing.total_height_m == 25.0
        assert massing.floors[-1].top_m == pytest.approx(25.0)

    def test_office_ground_floor_is_taller(self, generator):
        massing = generator.generate(params())
        assert massing.floors[0].height_m == pytest.approx(massing.floors[1].height_m * 1.2, abs=0.01)

    def test_residential_floors_are_even(self, generator):
        massing = generator.generate(params(usage=UsageCategory.RESIDENTIAL_MULTI, units=6, floors=3, max_height_m=9.1))
        assert [f.height_m for f in massing.floors] == pytest.approx([3.0, 3.0, 3.0])

    def test_elevations_are_cumulative(self, generator):
        massing = generator.generate(params())
        assert massing.floors[0].elevation_m == pytest.approx(0.1)
        for lower, upper in zip(massing.floors, massing.floors[1:]):
            assert upper.elevation_m == pytest.approx(lower.top_m)
            assert upper.level == lower.level + 1

    def test_default_height_from_structure(self, generator):
        massing = generator.generate(params(structure=StructureType.STEEL_FRAME, floors=3, max_height_m=None))
        assert massing.total_height_m == pytest.approx(0.1 + 3 * 3.6)

    def test_custom_foundation_height(self, generator):
        massing = generator.generate(params(foundation_height_m=0.5))
        assert massing.floors[0].elevation_m == pytest.approx(0.5)
        assert massing.foundation.top_m == 0.5


class TestSetback:

    def test_no_setback_up_to_five_floors(self, generator):
        massing = generator.generate(params(floors=5, max_height_m=18.0))
        assert massing.setback is None
        assert not any(f.is_setback for f in massing.floors)

    def test_setback_above_sixty_percent(self, generator):
        massing = generator.generate(params(floors=6, max_height_m=21.0))
        assert massing.setback.start_floor == 4
        assert [f.is_setback for f in massing.floors] == [False, False, False, True, True, True]
        base = massing.base_footprint.area
        assert massing.floors[3].footprint.area == pytest.approx(base * 0.64)
        assert massing.floors[2].footprint.area == pytest.approx(base)

    def test_setback_keeps_south_facade_in_northern_hemisphere(self, generator):
        site = SiteLocation(latitude=35.0, longitude=139.0)
        massing = generator.generate(params(floors=8, max_height_m=29.0), site)
        assert massing.floors[-1].footprint.bounds[1] == pytest.approx(massing.base_footprint.bounds[1])
        assert massing.floors[-1].footprint.bounds[3] < massing.base_footprint.bounds[3]

    def test_foundation_is_larger_than_footprint(self, generator):
        massing = generator.generate(params())
        assert massing.foundation.footprint.area == pytest.approx(massing.base_footprint.area * 1.21)


class TestBalconies:

    def test_no_balconies_for_office(self, generator):
        assert generator.generate(params()).balconies == []

    def test_single_family_defaults_to_one_unit(self, generator):
        massing = generator.generate(params(
            usage=UsageCategory.RESIDENTIAL_SINGLE, floors=2, building_area_sqm=80.0, max_height_m=6.0
        ))
        assert len(massing.balconies) == 1
        balcony = massing.balconies[0]
        assert balcony.floor == 2
        assert balcony.elevation_m == pytest.approx(massing.floors[1].elevation_m)
        assert balcony.y == pytest.approx(massing.base_footprint.bounds[1])

    def test_balconies_limited_by_units(self, generator):
        massing = generator.generate(params(
            usage=UsageCategory.RESIDENTIAL_MULTI, floors=5, building_area_sqm=600.0, max_height_m=16.0, units=8
        ))
        per_floor = {}
        for b in massing.balconies:
            per_floor[b.floor] = per_floor.get(b.floor, 0) + 1
        assert sorted(per_floor) == [2, 3, 4, 5]
        assert all(count == 2 for count in per_floor.values())

    def test_balconies_hang_outside_footprint(self, generator):
        massing = generator.generate(params(
            usage=UsageCategory.RESIDENTIAL_MULTI, floors=3, building_area_sqm=400.0, max_height_m=10.0, units=6
        ))
        for b in massing.balconies:
            _, min_y, _, max_y = b.polygon.bounds
            assert max_y == pytest.approx(massing.base_footprint.bounds[1])
            assert min_y < max_y


class TestValidation:

    @pytest.mark.parametrize("overrides", [
        dict(floors=0),
        dict(building_area_sqm=0.0),
        dict(building_area_sqm=-10.0),
        dict(max_height_m=-1.0),
        dict(max_height_m=0.05),
        dict(total_floor_area_sqm=100.0),
        dict(units=-1),
    ])
    def test_invalid_parameters_raise(self, generator, overrides):
        with pytest.raises(InvalidParametersError):
            generator.generate(params(**overrides))
