"""
Pytest configuration and fixtures for shadowcheck tests.

Provides reusable fixtures for:
- Sites and reference dates
- Engine configuration
- Building parameters and hand-built massings
- Regulations for direct simulator runs
"""

import sys
from datetime import date
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from shadowcheck.config import EngineConfig, SimulationConfig
from shadowcheck.geometry import Polygon
from shadowcheck.models import (
    SiteLocation, BuildingParameters, BuildingMassing, FloorMassing, Foundation,
    StructuralGrid, UsageCategory, StructureType, FootprintShape, ZoneRegulation, ZoneCategory
)
from shadowcheck.analysis import SolarEphemerisCalculator


# =============================================================================
# SITE FIXTURES
# =============================================================================

@pytest.fixture
def tokyo_site() -> SiteLocation:
    """Central Tokyo."""
    return SiteLocation(latitude=35.6812, longitude=139.7671, address="Marunouchi, Chiyoda")


@pytest.fixture
def solstice() -> date:
    return date(2025, 12, 21)


@pytest.fixture
def tokyo_ephemeris(tokyo_site, solstice):
    """Half-hour sun path for Tokyo on the winter solstice."""
    return SolarEphemerisCalculator().build_table(tokyo_site.latitude, tokyo_site.longitude, solstice)


# =============================================================================
# CONFIG FIXTURES
# =============================================================================

@pytest.fixture
def engine_config() -> EngineConfig:
    """Default configuration, independent of the global instance."""
    return EngineConfig()


@pytest.fixture
def coarse_config() -> EngineConfig:
    """2m grid for faster end-to-end runs."""
    return EngineConfig(simulation=SimulationConfig(grid_cell_size_m=2.0))


# =============================================================================
# BUILDING FIXTURES
# =============================================================================

@pytest.fixture
def office_params() -> BuildingParameters:
    return BuildingParameters(
        usage=UsageCategory.OFFICE,
        structure=StructureType.STEEL_FRAME,
        floors=4,
        building_area_sqm=600.0,
        max_height_m=14.0
    )


@pytest.fixture
def low_house_params() -> BuildingParameters:
    """Two-storey house under the low-rise trigger (Scenario A)."""
    return BuildingParameters(
        usage=UsageCategory.RESIDENTIAL_SINGLE,
        structure=StructureType.TIMBER_FRAME,
        floors=2,
        building_area_sqm=80.0,
        max_height_m=6.0
    )


@pytest.fixture
def apartment_params() -> BuildingParameters:
    """Wide four-storey apartment block over the low-rise trigger (Scenario B)."""
    return BuildingParameters(
        usage=UsageCategory.RESIDENTIAL_MULTI,
        structure=StructureType.WALL_TYPE_RC,
        floors=4,
        building_area_sqm=600.0,
        max_height_m=12.0,
        units=12
    )


@pytest.fixture
def box_massing():
    """Factory for an axis-aligned box massing centred on the origin."""
    def _make(width: float, depth: float, height: float, floors: int = 1) -> BuildingMassing:
        footprint = Polygon.rectangle(0.0, 0.0, width, depth)
        floor_height = height / floors
        return BuildingMassing(
            usage=UsageCategory.OFFICE,
            shape=FootprintShape.RECTANGLE,
            floors=[
                FloorMassing(level=i + 1, footprint=footprint, elevation_m=i * floor_height, height_m=floor_height)
                for i in range(floors)
            ],
            width_m=width,
            depth_m=depth,
            total_height_m=height,
            structural_grid=StructuralGrid(
                column_spacing_m=6.0, beam_depth_m=0.6, slab_thickness_m=0.2, default_floor_height_m=3.0
            ),
            foundation=Foundation(footprint=footprint, top_m=0.0, depth_m=0.0)
        )
    return _make


# =============================================================================
# REGULATION FIXTURES
# =============================================================================

@pytest.fixture
def low_rise_regulation() -> ZoneRegulation:
    """Low-rise 3h/2h thresholds at 1.5m that apply to any building height."""
    return ZoneRegulation(
        zone="test low-rise",
        category=ZoneCategory.LOW_RISE_EXCLUSIVE_1,
        target_height_m=0.0,
        measurement_height_m=1.5,
        near_limit_hours=3.0,
        far_limit_hours=2.0
    )
