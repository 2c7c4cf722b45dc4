"""
Procedural building massing from scalar building parameters

Produces stacked floor footprints with heights, an optional upper-floor
setback, balcony rows for residential programs and a foundation slab.
"""

import math
from typing import List, Optional, Tuple

from loguru import logger

from ..config import get_config, MassingConfig
from ..exceptions import InvalidParametersError
from ..geometry import Polygon
from ..models import (
    BuildingParameters, BuildingMassing, FloorMassing, SetbackInfo, Balcony,
    Foundation, StructuralGrid, FootprintShape, UsageCategory, StructureType,
    SiteLocation
)

# Fraction of the bounding rectangle covered by each footprint template
SHAPE_FILL = {
    FootprintShape.RECTANGLE: 1.0,
    FootprintShape.L_SHAPE: 0.75,
    FootprintShape.U_SHAPE: 0.8,
}

U_COURT_WIDTH_FRACTION = 0.4
U_COURT_DEPTH_FRACTION = 0.5

STRUCTURAL_GRIDS = {
    StructureType.WALL_TYPE_RC: StructuralGrid(
        column_spacing_m=5.4, beam_depth_m=0.5, slab_thickness_m=0.18, default_floor_height_m=2.9
    ),
    StructureType.STEEL_FRAME: StructuralGrid(
        column_spacing_m=8.0, beam_depth_m=0.8, slab_thickness_m=0.15, default_floor_height_m=3.6
    ),
    StructureType.TIMBER_FRAME: StructuralGrid(
        column_spacing_m=3.6, beam_depth_m=0.3, slab_thickness_m=0.24, default_floor_height_m=2.8
    ),
    StructureType.OTHER: StructuralGrid(
        column_spacing_m=6.0, beam_depth_m=0.6, slab_thickness_m=0.2, default_floor_height_m=3.0
    ),
}


class BuildingMassingGenerator:
    """
    Generate a BuildingMassing from BuildingParameters

    Footprints are centred on the origin with the long side running east-west.
    """

    def __init__(self, massing_config: Optional[MassingConfig] = None):
        self.config = massing_config or get_config().massing

    def generate(
        self,
        params: BuildingParameters,
        site: Optional[SiteLocation] = None
    ) -> BuildingMassing:
        """
        Build the massing for a set of parameters

        Args:
            params: Building parameters
            site: Optional site; its hemisphere anchors upper-floor setbacks
                  to the sun-facing facade

        Raises:
            InvalidParametersError: non-positive area, height or floor count
        """
        self._validate(params)

        grid = self.determine_structural_grid(params)
        foundation_h = self._foundation_height(params)
        max_height = params.max_height_m
        if max_height is None:
            max_height = foundation_h + params.floors * grid.default_floor_height_m
            logger.debug(f"No max height given, using {max_height:.2f}m from {params.structure.value} floor height")
        if max_height <= foundation_h:
            raise InvalidParametersError(
                f"max height {max_height}m must exceed foundation height {foundation_h}m"
            )

        ratio = self.calculate_aspect_ratio(params)
        width = math.sqrt(params.building_area_sqm * ratio)
        depth = params.building_area_sqm / width

        shape = self.select_shape(params, width)
        base_footprint, width, depth = self.footprint_template(shape, width, depth)

        floor_heights = self.calculate_floor_heights(params.usage, params.floors, max_height - foundation_h)

        setback = None
        setback_anchor = self._setback_anchor(base_footprint, site)
        if params.floors > self.config.setback_min_floors:
            start_floor = math.floor(params.floors * self.config.setback_start_fraction) + 1
            setback = SetbackInfo(
                start_floor=start_floor,
                ratio=self.config.setback_ratio,
                setback_distance_m=round(width * (1 - self.config.setback_ratio) / 2, 3)
            )

        floors: List[FloorMassing] = []
        elevation = foundation_h
        for level, height in enumerate(floor_heights, start=1):
            is_setback = setback is not None and level >= setback.start_floor
            footprint = base_footprint.scale(setback.ratio, setback_anchor) if is_setback else base_footprint
            floors.append(FloorMassing(
                level=level,
                footprint=footprint,
                elevation_m=round(elevation, 6),
                height_m=height,
                is_setback=is_setback
            ))
            elevation += height

        balconies = self.place_balconies(params, floors)

        foundation = Foundation(
            footprint=base_footprint.scale(self.config.foundation_scale, base_footprint.centroid),
            top_m=foundation_h,
            depth_m=foundation_h
        )

        logger.info(
            f"Generated {shape.value} massing: {width:.1f}m x {depth:.1f}m, {params.floors} floors, "
            f"{max_height:.2f}m, {len(balconies)} balconies"
            + (f", setback from floor {setback.start_floor}" if setback else "")
        )

        return BuildingMassing(
            usage=params.usage,
            shape=shape,
            floors=floors,
            width_m=width,
            depth_m=depth,
            total_height_m=max_height,
            structural_grid=grid,
            setback=setback,
            balconies=balconies,
            foundation=foundation
        )

    def _validate(self, params: BuildingParameters) -> None:
        errors = []
        if params.floors is None or params.floors < 1:
            errors.append(f"floor count must be at least 1, got {params.floors}")
        if not _positive(params.building_area_sqm):
            errors.append(f"building area must be positive, got {params.building_area_sqm}")
        if params.max_height_m is not None and not _positive(params.max_height_m):
            errors.append(f"max height must be positive, got {params.max_height_m}")
        if (
            params.total_floor_area_sqm is not None
            and _positive(params.building_area_sqm)
            and params.total_floor_area_sqm < params.building_area_sqm
        ):
            errors.append(
                f"total floor area {params.total_floor_area_sqm} is smaller than building area "
                f"{params.building_area_sqm}"
            )
        if params.units is not None and params.units < 0:
            errors.append(f"unit count must not be negative, got {params.units}")
        if params.foundation_height_m is not None and params.foundation_height_m < 0:
            errors.append(f"foundation height must not be negative, got {params.foundation_height_m}")

        if errors:
            raise InvalidParametersError("Invalid building parameters: " + "; ".join(errors))

        if params.units and not params.usage.is_residential:
            logger.warning(f"Unit count ignored for {params.usage.value} usage")

    def _foundation_height(self, params: BuildingParameters) -> float:
        if params.foundation_height_m is not None:
            return params.foundation_height_m
        return self.config.foundation_height_m

    def calculate_aspect_ratio(self, params: BuildingParameters) -> float:
        """Width/depth ratio by usage (width runs east-west)"""
        usage = params.usage
        if usage == UsageCategory.RESIDENTIAL_MULTI:
            # Wide south frontage grows with unit count
            return 1.3 + min((params.units or 0) / 40, 0.5)
        if usage == UsageCategory.COMMERCIAL:
            return 1.5 + min(0.1 * (params.floors - 1), 0.3)
        if usage == UsageCategory.OFFICE:
            return 1.3
        if usage == UsageCategory.RESIDENTIAL_SINGLE:
            return 1.1 if params.structure == StructureType.TIMBER_FRAME else 1.2
        return 1.0

    def determine_structural_grid(self, params: BuildingParameters) -> StructuralGrid:
        grid = STRUCTURAL_GRIDS[params.structure]
        if params.usage == UsageCategory.COMMERCIAL:
            # Large retail floors need wider spans
            grid = grid.model_copy(update={"column_spacing_m": round(grid.column_spacing_m * 1.2, 3)})
        return grid

    def calculate_floor_heights(self, usage: UsageCategory, floors: int, effective_height: float) -> List[float]:
        """
        Split the height above the foundation across floors

        Office and commercial ground floors are taller; the top floor
        absorbs rounding so the total is exact.
        """
        if floors == 1:
            return [effective_height]

        multiplier = self.config.ground_floor_multipliers.get(usage.value, 1.0)
        base = effective_height / (floors - 1 + multiplier)

        heights = [round(base * multiplier, 3)] + [round(base, 3)] * (floors - 1)
        heights[-1] = effective_height - sum(heights[:-1])
        return heights

    def select_shape(self, params: BuildingParameters, width: float) -> FootprintShape:
        if params.usage != UsageCategory.RESIDENTIAL_MULTI:
            return FootprintShape.RECTANGLE
        if params.units and params.units > self.config.u_shape_min_units:
            return FootprintShape.U_SHAPE
        if width > self.config.l_shape_min_width_m:
            return FootprintShape.L_SHAPE
        return FootprintShape.RECTANGLE

    def footprint_template(
        self,
        shape: FootprintShape,
        width: float,
        depth: float
    ) -> Tuple[Polygon, float, float]:
        """
        Polygon template for a shape, scaled so its area equals width * depth

        Returns the polygon and the overall (width, depth) of its bounds.
        """
        k = math.sqrt(1 / SHAPE_FILL[shape])
        w = width * k
        d = depth * k
        w2 = w / 2
        d2 = d / 2

        if shape == FootprintShape.L_SHAPE:
            # North-east quadrant removed
            points = [(-w2, -d2), (w2, -d2), (w2, 0.0), (0.0, 0.0), (0.0, d2), (-w2, d2)]
        elif shape == FootprintShape.U_SHAPE:
            # Court opens to the north so the south facade stays continuous
            cw2 = w * U_COURT_WIDTH_FRACTION / 2
            court_floor = d2 - d * U_COURT_DEPTH_FRACTION
            points = [
                (-w2, -d2), (w2, -d2), (w2, d2), (cw2, d2),
                (cw2, court_floor), (-cw2, court_floor), (-cw2, d2), (-w2, d2)
            ]
        else:
            return Polygon.rectangle(0.0, 0.0, w, d), w, d

        return Polygon(points=points), w, d

    def _setback_anchor(self, footprint: Polygon, site: Optional[SiteLocation]) -> Tuple[float, float]:
        """Point upper floors shrink towards; the sun-facing edge when the site is known"""
        min_x, min_y, max_x, max_y = footprint.bounds
        cx = (min_x + max_x) / 2
        if site is None or site.latitude is None:
            return (cx, (min_y + max_y) / 2)
        # Keep the sun-facing facade and pull back the shadow side
        return (cx, min_y) if site.latitude >= 0 else (cx, max_y)

    def place_balconies(self, params: BuildingParameters, floors: List[FloorMassing]) -> List[Balcony]:
        """One evenly spaced row of balconies on the south facade of each upper floor"""
        if not params.usage.is_residential or len(floors) < 2:
            return []

        units = params.units
        if params.usage == UsageCategory.RESIDENTIAL_SINGLE and not units:
            units = 1
        units_per_floor = math.ceil(units / (len(floors) - 1)) if units else None

        balconies = []
        for floor in floors[1:]:
            facade = self._south_facade(floor.footprint)
            if facade is None:
                continue
            (x_start, y), facade_width = facade

            count = math.floor(facade_width / self.config.balcony_module_m)
            if units_per_floor is not None:
                count = min(count, units_per_floor)
            if count <= 0:
                continue

            spacing = facade_width / (count + 1)
            for i in range(count):
                balconies.append(Balcony(
                    floor=floor.level,
                    x=x_start + spacing * (i + 1),
                    y=y,
                    width_m=self.config.balcony_width_m,
                    depth_m=self.config.balcony_depth_m,
                    elevation_m=floor.elevation_m
                ))

        return balconies

    @staticmethod
    def _south_facade(footprint: Polygon) -> Optional[Tuple[Tuple[float, float], float]]:
        """Start point and length of the longest east-running edge on the south side"""
        min_y = footprint.bounds[1]
        south_edges = [
            e for e in footprint.edges()
            if e["direction"] == "east" and abs(e["start"][1] - min_y) < 1e-6
        ]
        if not south_edges:
            return None
        edge = max(south_edges, key=lambda e: e["length_m"])
        return edge["start"], edge["length_m"]


def _positive(value: Optional[float]) -> bool:
    return value is not None and math.isfinite(value) and value > 0
