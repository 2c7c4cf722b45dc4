"""
Tests for planar polygon helpers.
"""

import numpy as np
import pytest
from pydantic import ValidationError

from shadowcheck.geometry import Polygon, GeometryUtils


class TestPolygonConstruction:
    """Ring normalisation on construction."""

    def test_closing_vertex_is_dropped(self):
        poly = Polygon(points=[(0, 0), (4, 0), (4, 3), (0, 3), (0, 0)])
        assert len(poly.points) == 4

    def test_clockwise_ring_is_reversed(self):
        poly = Polygon(points=[(0, 0), (0, 3), (4, 3), (4, 0)])
        assert GeometryUtils.signed_area(poly.points) > 0

    def test_too_few_points_rejected(self):
        with pytest.raises(ValidationError):
            Polygon(points=[(0, 0), (1, 1)])

    def test_rectangle(self):
        poly = Polygon.rectangle(10.0, 5.0, 20.0, 8.0)
        assert poly.area == pytest.approx(160.0)
        assert poly.perimeter == pytest.approx(56.0)
        assert poly.bounds == (0.0, 1.0, 20.0, 9.0)
        assert poly.centroid == pytest.approx((10.0, 5.0))
        assert poly.is_valid


class TestPolygonOperations:
    """Containment, distance and transforms."""

    @pytest.fixture
    def square(self):
        return Polygon.rectangle(0.0, 0.0, 10.0, 10.0)

    def test_contains_points_is_boundary_inclusive(self, square):
        xs = np.array([0.0, 5.0, 5.0, 5.01, -5.0, 2.0])
        ys = np.array([0.0, 0.0, 5.0, 0.0, -5.0, 9.0])
        assert square.contains_points(xs, ys).tolist() == [True, True, True, False, True, False]

    def test_translate(self, square):
        moved = square.translate(3.0, -2.0)
        assert moved.bounds == (-2.0, -7.0, 8.0, 3.0)
        assert moved.area == pytest.approx(square.area)

    def test_scale_about_edge_keeps_edge(self, square):
        scaled = square.scale(0.8, (0.0, -5.0))
        assert scaled.area == pytest.approx(64.0)
        assert scaled.bounds[1] == pytest.approx(-5.0)

    def test_edges_directions(self, square):
        directions = [e["direction"] for e in square.edges()]
        assert directions == ["east", "north", "west", "south"]
        assert all(e["length_m"] == pytest.approx(10.0) for e in square.edges())
