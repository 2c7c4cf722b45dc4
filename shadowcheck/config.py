"""
Configuration settings for the Shadow Compliance Engine
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional
import os

from loguru import logger


@dataclass
class SimulationConfig:
    """Sampling grid and time-step settings for the shadow simulation"""
    # Grid spacing and reach around the building (meters)
    grid_cell_size_m: float = 1.0
    sample_radius_m: float = 50.0

    # Legal daylight monitoring uses half-hour steps
    time_step_hours: float = 0.5

    # Points at or inside this distance from the boundary use the near-band limit
    near_band_max_distance_m: float = 10.0

    # Vertical spacing of shadow-casting slices within a floor (meters)
    vertical_slice_interval_m: float = 2.0

    # Balcony parapet height above its floor slab (meters)
    balcony_parapet_height_m: float = 1.1

    # Number of floors reported as critical
    critical_floor_count: int = 3


@dataclass
class MassingConfig:
    """Defaults for procedural massing generation"""
    foundation_height_m: float = 0.1
    foundation_scale: float = 1.1

    # Setback applies above this many floors
    setback_min_floors: int = 5
    setback_start_fraction: float = 0.6
    setback_ratio: float = 0.8

    # Footprint shape selection for residential-multi programs
    l_shape_min_width_m: float = 40.0
    u_shape_min_units: int = 50

    # Balcony modules
    balcony_width_m: float = 3.0
    balcony_depth_m: float = 1.5
    balcony_module_m: float = 4.0

    # Ground floor height multipliers by usage
    ground_floor_multipliers: Dict[str, float] = field(default_factory=lambda: {
        "office": 1.2,
        "commercial": 1.5,
    })


@dataclass
class RegulationConfig:
    """Regulated daily window and fallback thresholds"""
    window_start_hour: float = 8.0
    window_end_hour: float = 16.0

    # Distance from the boundary within which a setback is worth suggesting
    setback_trigger_distance_m: float = 15.0
    recommended_setback_m: float = 3.0


@dataclass
class EngineConfig:
    """Engine configuration"""
    simulation: SimulationConfig = field(default_factory=SimulationConfig)
    massing: MassingConfig = field(default_factory=MassingConfig)
    regulation: RegulationConfig = field(default_factory=RegulationConfig)

    # Reuse a previous compliant result when the new massing is not larger
    enable_quick_recheck: bool = False

    # Optional on-disk result cache directory
    cache_dir: Optional[str] = None


# Global config instance
config = EngineConfig()


def get_config() -> EngineConfig:
    """Get global configuration"""
    return config


def load_config_from_env(env_path: Optional[str] = None) -> EngineConfig:
    """
    Build a configuration from SHADOWCHECK_* environment variables.

    A .env file is loaded first when present (existing variables win).
    """
    from dotenv import load_dotenv

    if env_path and Path(env_path).exists():
        load_dotenv(env_path, override=False)
    else:
        load_dotenv(override=False)

    cfg = EngineConfig()

    cell = os.getenv("SHADOWCHECK_GRID_CELL_M")
    if cell:
        cfg.simulation.grid_cell_size_m = float(cell)
    radius = os.getenv("SHADOWCHECK_SAMPLE_RADIUS_M")
    if radius:
        cfg.simulation.sample_radius_m = float(radius)
    cache_dir = os.getenv("SHADOWCHECK_CACHE_DIR")
    if cache_dir:
        cfg.cache_dir = cache_dir
    quick = os.getenv("SHADOWCHECK_QUICK_RECHECK")
    if quick:
        cfg.enable_quick_recheck = quick.strip().lower() in ("1", "true", "yes", "on")

    logger.debug(f"Loaded engine config from environment: cell={cfg.simulation.grid_cell_size_m}m, "
                 f"radius={cfg.simulation.sample_radius_m}m, quick_recheck={cfg.enable_quick_recheck}")
    return cfg


def validate_config(config: EngineConfig) -> None:
    """
    Validate that all required configuration values are set.
    Raises ValueError if any required value is missing or invalid.
    """
    errors = []

    sim = config.simulation
    if sim.grid_cell_size_m is None or sim.grid_cell_size_m <= 0:
        errors.append(f"simulation.grid_cell_size_m must be positive, got {sim.grid_cell_size_m}")
    if sim.sample_radius_m is None or sim.sample_radius_m <= 0:
        errors.append(f"simulation.sample_radius_m must be positive, got {sim.sample_radius_m}")
    if sim.time_step_hours is None or sim.time_step_hours <= 0:
        errors.append(f"simulation.time_step_hours must be positive, got {sim.time_step_hours}")
    elif (24.0 / sim.time_step_hours) != int(24.0 / sim.time_step_hours):
        errors.append(f"simulation.time_step_hours must divide 24, got {sim.time_step_hours}")
    if sim.vertical_slice_interval_m is None or sim.vertical_slice_interval_m <= 0:
        errors.append(f"simulation.vertical_slice_interval_m must be positive, got {sim.vertical_slice_interval_m}")

    massing = config.massing
    if not 0 < massing.setback_ratio <= 1:
        errors.append(f"massing.setback_ratio must be in (0, 1], got {massing.setback_ratio}")
    if massing.foundation_height_m < 0:
        errors.append(f"massing.foundation_height_m must not be negative, got {massing.foundation_height_m}")

    reg = config.regulation
    if not 0 <= reg.window_start_hour < reg.window_end_hour <= 24:
        errors.append(
            f"regulation window must satisfy 0 <= start < end <= 24, "
            f"got {reg.window_start_hour}-{reg.window_end_hour}"
        )

    if errors:
        error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        raise ValueError(error_msg)
