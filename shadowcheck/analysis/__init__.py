"""
Analysis modules for the Shadow Compliance Engine
"""

from .solar_ephemeris import SolarEphemerisCalculator, EphemerisTable, most_recent_winter_solstice
from .massing_generator import BuildingMassingGenerator
from .regulation_resolver import ZoningRegulationResolver, classify_zone
from .shadow_simulator import ShadowComplianceSimulator
from .recommendation_engine import RecommendationEngine

__all__ = [
    "SolarEphemerisCalculator",
    "EphemerisTable",
    "most_recent_winter_solstice",
    "BuildingMassingGenerator",
    "ZoningRegulationResolver",
    "classify_zone",
    "ShadowComplianceSimulator",
    "RecommendationEngine"
]
