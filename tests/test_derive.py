import math

import pytest

from compass_kernel.curves import signed_distance_to_curve
from compass_kernel.derive import (
    circle_curve_from_coords,
    constrain_2d_point,
    derive_curve,
    great_circle_from_coords,
    is_2d_point_in_domain,
    line_curve_from_coords,
    sphere_circle_from_coords,
)
from compass_kernel.model import ConstructionDoc, CurveRef, create_empty_doc
from compass_kernel.sphere import normalize3
from compass_kernel.types import CircleCurve, GeometryMode, LineCurve, SpherePlane

E = GeometryMode.EUCLIDEAN
INV = GeometryMode.INVERSIVE_EUCLIDEAN
DISK = GeometryMode.HYPERBOLIC_POINCARE
UHP = GeometryMode.HYPERBOLIC_HALF_PLANE
SPHERE = GeometryMode.SPHERICAL


def _on(curve, p, tol=1e-9):
    return math.isclose(signed_distance_to_curve(curve, p), 0.0, abs_tol=tol)


def test_euclidean_line_and_circle():
    line = line_curve_from_coords(E, (0.0, 0.0), (2.0, 2.0))
    circle = circle_curve_from_coords(E, (1.0, 1.0), (4.0, 5.0))

    assert isinstance(line, LineCurve)
    assert _on(line, (5.0, 5.0))
    assert circle == CircleCurve(1.0, 1.0, 5.0)


def test_degenerate_inputs_have_no_curve():
    assert line_curve_from_coords(E, (1.0, 1.0), (1.0, 1.0)) is None
    assert circle_curve_from_coords(E, (1.0, 1.0), (1.0, 1.0)) is None


def test_inversive_line_is_circle_through_the_star():
    star = (0.0, 0.0)

    curve = line_curve_from_coords(INV, (1.0, 0.0), (0.0, 1.0), star=star)

    assert isinstance(curve, CircleCurve)
    assert math.isclose(curve.cx, 0.5) and math.isclose(curve.cy, 0.5)
    for p in [(1.0, 0.0), (0.0, 1.0), star]:
        assert _on(curve, p)


def test_inversive_line_through_the_star_is_straight():
    star = (0.0, 0.0)

    curve = line_curve_from_coords(INV, star, (2.0, 1.0), star=star, a_is_star=True)

    assert isinstance(curve, LineCurve)
    assert _on(curve, (4.0, 2.0))


def test_inversive_line_collinear_with_the_star_falls_back_to_a_line():
    curve = line_curve_from_coords(INV, (1.0, 0.0), (2.0, 0.0), star=(0.0, 0.0))

    assert isinstance(curve, LineCurve)
    assert _on(curve, (5.0, 0.0))


def test_inversive_circle_branches():
    star = (0.0, 0.0)

    centered_on_star = circle_curve_from_coords(INV, star, (3.0, 4.0), star=star)
    through_star = circle_curve_from_coords(INV, (1.0, 1.0), star, star=star)
    generic = circle_curve_from_coords(INV, (2.0, 0.0), (2.0, 1.0), star=star)

    assert centered_on_star == CircleCurve(0.0, 0.0, 5.0)
    assert isinstance(through_star, LineCurve)
    assert _on(through_star, (3.0, 3.0))
    assert isinstance(generic, CircleCurve)
    assert _on(generic, (2.0, 1.0))
    assert not _on(generic, star)


def test_poincare_circle_about_origin():
    curve = circle_curve_from_coords(DISK, (0.0, 0.0), (0.5, 0.0))

    assert isinstance(curve, CircleCurve)
    assert math.isclose(curve.r, 0.5)
    assert math.isclose(curve.cx, 0.0, abs_tol=1e-12)


@pytest.mark.parametrize("center, radius_point", [((0.3, 0.2), (0.5, -0.1)), ((-0.6, 0.1), (-0.2, 0.4))])
def test_poincare_circle_passes_through_its_radius_point(center, radius_point):
    curve = circle_curve_from_coords(DISK, center, radius_point)

    assert isinstance(curve, CircleCurve)
    assert _on(curve, radius_point)
    assert math.hypot(curve.cx, curve.cy) + curve.r < 1.0


def test_poincare_lines_are_geodesics():
    diameter = line_curve_from_coords(DISK, (-0.5, 0.0), (0.5, 0.0))
    arc = line_curve_from_coords(DISK, (0.1, 0.4), (0.5, -0.2))

    assert isinstance(diameter, LineCurve)
    assert isinstance(arc, CircleCurve)
    assert math.isclose(arc.cx ** 2 + arc.cy ** 2, arc.r ** 2 + 1.0)


def test_half_plane_circle():
    curve = circle_curve_from_coords(UHP, (0.0, 1.0), (0.0, 2.0))

    assert isinstance(curve, CircleCurve)
    assert math.isclose(curve.cy, 1.25)
    assert math.isclose(curve.r, 0.75)
    assert _on(curve, (0.0, 0.5))


def test_half_plane_lines():
    assert isinstance(line_curve_from_coords(UHP, (1.0, 1.0), (1.0, 2.0)), LineCurve)
    arc = line_curve_from_coords(UHP, (0.0, 1.0), (2.0, 1.0))
    assert isinstance(arc, CircleCurve)
    assert math.isclose(arc.cy, 0.0)


def test_sphere_great_circle_and_circle():
    plane = great_circle_from_coords((1.0, 0.0, 0.0), (0.0, 1.0, 0.0))
    cap = sphere_circle_from_coords((0.0, 0.0, 1.0), normalize3((1.0, 0.0, 1.0)))

    assert plane == SpherePlane((0.0, 0.0, 1.0), 0.0)
    assert math.isclose(cap.d, math.cos(math.pi / 4))
    assert great_circle_from_coords((0.0, 0.0, 1.0), (0.0, 0.0, -1.0)) is None


def _doc_with_segment(mode, a, b):
    doc = create_empty_doc(mode)
    p = doc.add_point(*a)
    q = doc.add_point(*b)
    line = doc.add_line(p.id, q.id)
    circle = doc.add_circle(p.id, q.id)
    return doc, line, circle


def test_derive_curve_from_document():
    doc, line, circle = _doc_with_segment(E, (0.0, 0.0), (3.0, 4.0))

    assert isinstance(derive_curve(E, doc, CurveRef("line", line.id)), LineCurve)
    assert derive_curve(E, doc, CurveRef("circle", circle.id)) == CircleCurve(0.0, 0.0, 5.0)
    assert derive_curve(E, doc, CurveRef("line", "missing")) is None


def test_derive_curve_uses_the_document_star():
    doc = create_empty_doc(INV)
    p = doc.add_point(1.0, 0.0)
    line_through_star = doc.add_line(doc.star_point_id, p.id)
    q = doc.add_point(0.0, 1.0)
    line = doc.add_line(p.id, q.id)

    assert isinstance(derive_curve(INV, doc, CurveRef("line", line_through_star.id)), LineCurve)
    assert isinstance(derive_curve(INV, doc, CurveRef("line", line.id)), CircleCurve)


def test_derive_curve_on_the_sphere():
    doc = ConstructionDoc()
    a = doc.add_point(1.0, 0.0, 0.0)
    b = doc.add_point(0.0, 1.0, 0.0)
    line = doc.add_line(a.id, b.id)

    assert derive_curve(SPHERE, doc, CurveRef("line", line.id)) == SpherePlane((0.0, 0.0, 1.0), 0.0)


def test_domains_and_constraining():
    assert is_2d_point_in_domain(DISK, (0.5, 0.5))
    assert not is_2d_point_in_domain(DISK, (0.8, 0.8))
    assert not is_2d_point_in_domain(UHP, (3.0, -1.0))
    assert is_2d_point_in_domain(E, (1e6, -1e6))

    inside = constrain_2d_point(DISK, (3.0, 4.0))
    assert math.hypot(*inside) < 1.0
    assert constrain_2d_point(UHP, (2.0, -5.0))[1] > 0.0
    assert constrain_2d_point(E, (2.0, -5.0)) == (2.0, -5.0)
