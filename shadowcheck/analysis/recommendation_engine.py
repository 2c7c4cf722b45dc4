"""
Design recommendations for non-compliant massings
"""

import math
from typing import List, Optional

from loguru import logger

from ..config import get_config, RegulationConfig
from ..models import (
    BuildingMassing, ComplianceResult, ExpectedImprovement, PRIORITY_ORDER,
    HeightReductionRecommendation, SetbackRecommendation, FloorReductionRecommendation,
    ShapeModificationRecommendation, BalconyAdjustmentRecommendation
)

# Plans more slender than this gain little from further elongation
MAX_SUGGESTED_ASPECT_RATIO = 3.0
SHAPE_TRIGGER_MARGIN_M = 5.0
SUGGESTED_BALCONY_DEPTH_FRACTION = 2 / 3


class RecommendationEngine:
    """Rule-based suggestions derived from the violating sample points"""

    def __init__(self, regulation_config: Optional[RegulationConfig] = None):
        self.reg_config = regulation_config or get_config().regulation

    def generate(self, result: ComplianceResult, massing: BuildingMassing) -> List:
        """
        Build recommendations for a simulation result

        Rules are evaluated independently; the list is ordered by
        priority (critical first), keeping rule order within a priority.
        """
        violating = result.violating_points
        if not violating:
            return []

        recommendations = []

        mean_violation = sum(p.violation_hours for p in violating) / len(violating)
        if mean_violation > 1.0:
            recommendations.append(self._height_reduction(result, massing, mean_violation))

        nearest = min(p.distance_to_boundary_m for p in violating)
        if nearest <= self.reg_config.setback_trigger_distance_m:
            recommendations.append(self._setback(result, massing, nearest))

        floor_rec = self._floor_reduction(result, massing)
        if floor_rec is not None:
            recommendations.append(floor_rec)

        if massing.total_height_m > result.regulation.target_height_m + SHAPE_TRIGGER_MARGIN_M:
            recommendations.append(self._shape_modification(result, massing))

        if massing.balconies:
            recommendations.append(self._balcony_adjustment(result, massing))

        recommendations.sort(key=lambda r: PRIORITY_ORDER[r.priority])
        logger.info(
            f"Generated {len(recommendations)} recommendations: "
            f"{', '.join(r.type for r in recommendations)}"
        )
        return recommendations

    def _height_reduction(
        self,
        result: ComplianceResult,
        massing: BuildingMassing,
        mean_violation: float
    ) -> HeightReductionRecommendation:
        reduction = math.ceil(mean_violation * 1.5)
        if reduction <= 2:
            cost = "low"
        elif reduction <= 5:
            cost = "medium"
        else:
            cost = "high"

        typical_floor = massing.total_height_m / massing.floor_count
        floors_lost = min(massing.floor_count, math.ceil(reduction / typical_floor))

        return HeightReductionRecommendation(
            priority="critical" if mean_violation > 2.0 else "high",
            description=(
                f"Reduce building height by {reduction}m to cut the average excess shadow "
                f"of {mean_violation:.1f}h"
            ),
            expected_improvement=ExpectedImprovement(
                compliance_rate_improvement=min(80.0, mean_violation * 30),
                shadow_reduction_area_sqm=result.violation_area_sqm * 0.6,
                affected_floor_area_sqm=massing.base_footprint.area * floors_lost
            ),
            implementation_cost=cost,
            reduction_m=reduction,
            mean_violation_hours=mean_violation
        )

    def _setback(self, result: ComplianceResult, massing: BuildingMassing, nearest: float) -> SetbackRecommendation:
        distance = self.reg_config.recommended_setback_m
        return SetbackRecommendation(
            priority="high",
            description=(
                f"Set the building back {distance:.1f}m from the boundary; "
                f"violations occur {nearest:.1f}m from the building"
            ),
            expected_improvement=ExpectedImprovement(
                compliance_rate_improvement=40.0,
                shadow_reduction_area_sqm=result.violation_area_sqm * 0.4,
                affected_floor_area_sqm=massing.base_footprint.area * 0.2
            ),
            implementation_cost="medium",
            setback_distance_m=distance,
            nearest_violation_distance_m=nearest
        )

    def _floor_reduction(self, result: ComplianceResult, massing: BuildingMassing):
        critical = result.geometry_stats.critical_floors[:2]
        if not critical:
            return None

        from_floor = min(critical)
        if from_floor <= 1:
            # Removing the ground floor is not a design option
            return None

        removed = [f for f in massing.floors if f.level >= from_floor]
        return FloorReductionRecommendation(
            priority="medium",
            description=(
                f"Remove floors {from_floor}-{massing.floor_count} "
                f"({len(removed)} floor{'s' if len(removed) != 1 else ''}) with the largest shadow impact"
            ),
            expected_improvement=ExpectedImprovement(
                compliance_rate_improvement=50.0,
                shadow_reduction_area_sqm=result.violation_area_sqm * 0.5,
                affected_floor_area_sqm=sum(f.footprint.area for f in removed)
            ),
            implementation_cost="high",
            from_floor=from_floor,
            floors_removed=len(removed)
        )

    def _shape_modification(self, result: ComplianceResult, massing: BuildingMassing) -> ShapeModificationRecommendation:
        current = massing.width_m / massing.depth_m
        suggested = max(current, min(MAX_SUGGESTED_ASPECT_RATIO, current * 1.3))
        return ShapeModificationRecommendation(
            priority="medium",
            description=(
                f"Elongate the plan east-west (aspect ratio {current:.2f} -> {suggested:.2f}) "
                f"to narrow the north shadow"
            ),
            expected_improvement=ExpectedImprovement(
                compliance_rate_improvement=25.0,
                shadow_reduction_area_sqm=result.violation_area_sqm * 0.3,
                affected_floor_area_sqm=massing.base_footprint.area
            ),
            implementation_cost="medium",
            current_aspect_ratio=current,
            suggested_aspect_ratio=suggested
        )

    def _balcony_adjustment(self, result: ComplianceResult, massing: BuildingMassing) -> BalconyAdjustmentRecommendation:
        count = len(massing.balconies)
        depth = massing.balconies[0].depth_m * SUGGESTED_BALCONY_DEPTH_FRACTION
        return BalconyAdjustmentRecommendation(
            priority="low",
            description=f"Reduce depth of {count} balconies to {depth:.1f}m or reposition them",
            expected_improvement=ExpectedImprovement(
                compliance_rate_improvement=15.0,
                shadow_reduction_area_sqm=result.violation_area_sqm * 0.1,
                affected_floor_area_sqm=sum(b.width_m * b.depth_m for b in massing.balconies)
            ),
            implementation_cost="low",
            balcony_count=count,
            suggested_depth_m=round(depth, 2)
        )
