"""
Planar geometry for massing and shadow sampling

All coordinates are local meters on a flat plane centred on the site:
x grows east, y grows north.
"""

import math
from typing import List, Tuple, Dict, Any, Sequence

import numpy as np
import shapely
from shapely.geometry import Polygon as ShapelyPolygon
from pydantic import BaseModel, ConfigDict, field_validator

Point2D = Tuple[float, float]


class GeometryUtils:
    """Utility functions for geometric operations"""

    @staticmethod
    def polygon_centroid(coords: Sequence[Point2D]) -> Tuple[float, float]:
        """Calculate vertex centroid of polygon"""
        if not coords:
            return (0, 0)

        n = len(coords)
        if coords[0] == coords[-1]:
            n -= 1

        sum_x = sum(c[0] for c in coords[:n])
        sum_y = sum(c[1] for c in coords[:n])

        return (sum_x / n, sum_y / n)

    @staticmethod
    def signed_area(coords: Sequence[Point2D]) -> float:
        """Shoelace area, positive for counter-clockwise rings"""
        n = len(coords)
        if n < 3:
            return 0.0

        area = 0.0
        for i in range(n):
            j = (i + 1) % n
            area += coords[i][0] * coords[j][1]
            area -= coords[j][0] * coords[i][1]

        return area / 2.0

    @staticmethod
    def polygon_area_local(coords: Sequence[Point2D]) -> float:
        """Calculate polygon area in square meters (local coords)"""
        return abs(GeometryUtils.signed_area(coords))

    @staticmethod
    def polygon_perimeter_local(coords: Sequence[Point2D]) -> float:
        """Calculate polygon perimeter in meters (local coords)"""
        if len(coords) < 2:
            return 0.0

        perimeter = 0.0
        n = len(coords)
        for i in range(n):
            j = (i + 1) % n
            dx = coords[j][0] - coords[i][0]
            dy = coords[j][1] - coords[i][1]
            perimeter += math.sqrt(dx*dx + dy*dy)

        return perimeter

    @staticmethod
    def get_polygon_edges(coords: Sequence[Point2D]) -> List[Dict[str, Any]]:
        """
        Get edges of polygon with their properties

        Returns list of edges with start, end, length, and direction
        """
        if len(coords) < 2:
            return []

        coords = list(coords)
        if coords[0] != coords[-1]:
            coords = coords + [coords[0]]

        edges = []
        n = len(coords) - 1

        for i in range(n):
            start = coords[i]
            end = coords[i + 1]

            dx = end[0] - start[0]
            dy = end[1] - start[1]
            length = math.sqrt(dx*dx + dy*dy)

            # Bearing from start to end, 0 = north, 90 = east
            if length > 0:
                angle = math.degrees(math.atan2(dx, dy))
                if angle < 0:
                    angle += 360
            else:
                angle = 0

            edges.append({
                "index": i,
                "start": start,
                "end": end,
                "length_m": length,
                "bearing": angle,
                "direction": GeometryUtils._angle_to_direction(angle)
            })

        return edges

    @staticmethod
    def _angle_to_direction(angle: float) -> str:
        """Convert bearing angle to cardinal direction"""
        if angle < 22.5 or angle >= 337.5:
            return "north"
        elif angle < 67.5:
            return "northeast"
        elif angle < 112.5:
            return "east"
        elif angle < 157.5:
            return "southeast"
        elif angle < 202.5:
            return "south"
        elif angle < 247.5:
            return "southwest"
        elif angle < 292.5:
            return "west"
        else:
            return "northwest"


class Polygon(BaseModel):
    """
    Closed planar polygon stored as an open, counter-clockwise vertex ring.

    Shared by massing generation and the shadow simulator; every operation
    returns a new value.
    """
    model_config = ConfigDict(frozen=True)

    points: Tuple[Point2D, ...]

    @field_validator("points", mode="before")
    @classmethod
    def _normalise_ring(cls, value):
        pts = [(float(p[0]), float(p[1])) for p in value]
        if len(pts) > 1 and pts[0] == pts[-1]:
            pts = pts[:-1]
        if len(pts) < 3:
            raise ValueError(f"polygon needs at least 3 distinct vertices, got {len(pts)}")
        if GeometryUtils.signed_area(pts) < 0:
            pts.reverse()
        return tuple(pts)

    @classmethod
    def rectangle(cls, cx: float, cy: float, width: float, depth: float) -> "Polygon":
        """Axis-aligned rectangle centred on (cx, cy)"""
        w2 = width / 2
        d2 = depth / 2
        return cls(points=[
            (cx - w2, cy - d2),
            (cx + w2, cy - d2),
            (cx + w2, cy + d2),
            (cx - w2, cy + d2),
        ])

    @property
    def area(self) -> float:
        return GeometryUtils.polygon_area_local(self.points)

    @property
    def perimeter(self) -> float:
        return GeometryUtils.polygon_perimeter_local(self.points)

    @property
    def centroid(self) -> Tuple[float, float]:
        return GeometryUtils.polygon_centroid(self.points)

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        """(min_x, min_y, max_x, max_y)"""
        xs = [p[0] for p in self.points]
        ys = [p[1] for p in self.points]
        return (min(xs), min(ys), max(xs), max(ys))

    def edges(self) -> List[Dict[str, Any]]:
        return GeometryUtils.get_polygon_edges(self.points)

    def translate(self, dx: float, dy: float) -> "Polygon":
        return Polygon(points=[(x + dx, y + dy) for x, y in self.points])

    def scale(self, factor: float, origin: Point2D = (0.0, 0.0)) -> "Polygon":
        ox, oy = origin
        return Polygon(points=[(ox + (x - ox) * factor, oy + (y - oy) * factor) for x, y in self.points])

    def to_shapely(self) -> ShapelyPolygon:
        return ShapelyPolygon(self.points)

    @property
    def is_valid(self) -> bool:
        return self.area > 0 and self.to_shapely().is_valid

    def contains_points(self, xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
        """Vectorised containment (boundary inclusive) for coordinate arrays"""
        geom = self.to_shapely()
        shapely.prepare(geom)
        return shapely.intersects_xy(geom, xs, ys)
