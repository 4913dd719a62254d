"""Per-mode derivation of drawable curves from construction objects.

Every function here is pure and returns ``None`` for a configuration with no
valid realisation (coincident endpoints, antipodal sphere points, degenerate
radii, boundary-adjacent hyperbolic points).  Callers skip such objects for the
current frame; dragging out of the degeneracy recovers them automatically.
"""

from __future__ import annotations

import math
from typing import Optional, Sequence, Union

from .charts import (
    half_plane_distance,
    poincare_distance,
    spherical_distance,
    uses_poincare_internal_chart,
)
from .curves import circle_through3, half_plane_geodesic, line_through, poincare_geodesic
from .model import Circle, ConstructionDoc, CurveRef, Line
from .sphere import normalize3
from .types import EPS, CircleCurve, Curve2D, GeometryMode, LineCurve, SpherePlane, Vec2

DOMAIN_EPS = 1e-9
CONSTRAIN_EPS = 1e-6


def euclid_dist(p: Sequence[float], q: Sequence[float]) -> float:
    return math.hypot(p[0] - q[0], p[1] - q[1])


def line_curve_from_coords(
    mode: GeometryMode,
    a: Sequence[float],
    b: Sequence[float],
    *,
    star: Optional[Sequence[float]] = None,
    a_is_star: bool = False,
    b_is_star: bool = False,
) -> Optional[Curve2D]:
    """Curve of the line through chart points ``a`` and ``b`` in ``mode``.

    ``star`` is the chart image of the point at infinity (inversive mode only);
    ``a_is_star``/``b_is_star`` flag an endpoint that *is* that point.
    """

    if mode is GeometryMode.INVERSIVE_EUCLIDEAN:
        if star is None:
            return line_through(a, b)
        if a_is_star or b_is_star:
            other = b if a_is_star else a
            return line_through(star, other)
        circle = circle_through3(a, b, star)
        return circle if circle is not None else line_through(a, b)

    if uses_poincare_internal_chart(mode):
        return poincare_geodesic(a, b)

    if mode is GeometryMode.HYPERBOLIC_HALF_PLANE:
        return half_plane_geodesic(a, b)

    return line_through(a, b)


def _inversive_circle(center: Vec2, radius_point: Vec2, star: Vec2) -> Optional[Curve2D]:
    p_rel = (center[0] - star[0], center[1] - star[1])
    q_rel = (radius_point[0] - star[0], radius_point[1] - star[1])
    p_rel_sq = p_rel[0] * p_rel[0] + p_rel[1] * p_rel[1]
    q_rel_sq = q_rel[0] * q_rel[0] + q_rel[1] * q_rel[1]
    eps_sq = 1e-16

    # Centre at infinity: the circle centred on the star's chart image.
    if p_rel_sq <= eps_sq:
        r = math.hypot(*q_rel)
        if not math.isfinite(r) or r <= 0.0:
            return None
        return CircleCurve(star[0], star[1], r)

    # Radius point at infinity: the circle passes through infinity, so it is a line.
    if q_rel_sq <= eps_sq:
        return line_through(star, center)

    # Unit inversion about the star; the result does not depend on the radius chosen.
    u = (p_rel[0] / p_rel_sq, p_rel[1] / p_rel_sq)
    q_star = (q_rel[0] / q_rel_sq, q_rel[1] / q_rel_sq)
    r_star = math.hypot(q_star[0] - u[0], q_star[1] - u[1])
    if not math.isfinite(r_star) or r_star <= 0.0:
        return None

    # Image of circle (u, r*) under unit inversion: centre u/(|u|^2 - r*^2),
    # radius r*/||u|^2 - r*^2|; a line when |u| == r*.
    u_sq = u[0] * u[0] + u[1] * u[1]
    denom = u_sq - r_star * r_star
    tol = 1e-12 * max(1.0, u_sq, r_star * r_star)
    if abs(denom) <= tol:
        u_len = math.sqrt(max(0.0, u_sq))
        if u_len <= 1e-14:
            return None
        nx = u[0] / u_len
        ny = u[1] / u_len
        return LineCurve(nx, ny, -(nx * star[0] + ny * star[1]) - 1.0 / (2.0 * u_len))
    r = r_star / abs(denom)
    if not math.isfinite(r) or r <= 0.0:
        return None
    return CircleCurve(star[0] + u[0] / denom, star[1] + u[1] / denom, r)


def circle_curve_from_coords(
    mode: GeometryMode,
    center: Sequence[float],
    radius_point: Sequence[float],
    *,
    star: Optional[Sequence[float]] = None,
) -> Optional[Curve2D]:
    """Curve of the circle about ``center`` through ``radius_point`` in ``mode``."""

    c = (float(center[0]), float(center[1]))
    q = (float(radius_point[0]), float(radius_point[1]))

    if mode is GeometryMode.INVERSIVE_EUCLIDEAN:
        s = (float(star[0]), float(star[1])) if star is not None else (0.0, 0.0)
        return _inversive_circle(c, q, s)

    if uses_poincare_internal_chart(mode):
        rho = poincare_distance(c, q)
        s = math.tanh(rho / 2.0)
        p_norm_sq = c[0] * c[0] + c[1] * c[1]
        denom = 1.0 - s * s * p_norm_sq
        if abs(denom) < 1e-12:
            return None
        r = (1.0 - p_norm_sq) * s / denom
        if not math.isfinite(r) or r <= 0.0:
            return None
        k = (1.0 - s * s) / denom
        return CircleCurve(k * c[0], k * c[1], abs(r))

    if mode is GeometryMode.HYPERBOLIC_HALF_PLANE:
        rho = half_plane_distance(c, q)
        if not math.isfinite(rho):
            return None
        v = c[1]
        r = v * math.sinh(rho)
        if not math.isfinite(r) or r <= 0.0:
            return None
        return CircleCurve(c[0], v * math.cosh(rho), r)

    r = euclid_dist(c, q)
    if not math.isfinite(r) or r <= 0.0:
        return None
    return CircleCurve(c[0], c[1], r)


def _star_coords(doc: ConstructionDoc) -> Optional[Vec2]:
    star = doc.star_point
    return star.xy if star is not None else None


def derive_2d_line_curve(mode: GeometryMode, doc: ConstructionDoc, line: Line) -> Optional[Curve2D]:
    p1 = doc.point(line.p1)
    p2 = doc.point(line.p2)
    if p1 is None or p2 is None:
        return None
    star_id = doc.star_point_id if mode is GeometryMode.INVERSIVE_EUCLIDEAN else None
    star = _star_coords(doc) if star_id is not None else None
    if star_id is not None and star is None:
        return None
    return line_curve_from_coords(
        mode,
        p1.xy,
        p2.xy,
        star=star,
        a_is_star=line.p1 == star_id,
        b_is_star=line.p2 == star_id,
    )


def derive_2d_circle_curve(mode: GeometryMode, doc: ConstructionDoc, circle: Circle) -> Optional[Curve2D]:
    center = doc.point(circle.center)
    radius_point = doc.point(circle.radius_point)
    if center is None or radius_point is None:
        return None
    star = _star_coords(doc) if mode is GeometryMode.INVERSIVE_EUCLIDEAN else None
    return circle_curve_from_coords(mode, center.xy, radius_point.xy, star=star)


def great_circle_from_coords(a: Sequence[float], b: Sequence[float]) -> Optional[SpherePlane]:
    n = (
        a[1] * b[2] - a[2] * b[1],
        a[2] * b[0] - a[0] * b[2],
        a[0] * b[1] - a[1] * b[0],
    )
    if math.sqrt(n[0] * n[0] + n[1] * n[1] + n[2] * n[2]) < EPS:
        return None
    return SpherePlane(normalize3(n), 0.0)


def sphere_circle_from_coords(center: Sequence[float], radius_point: Sequence[float]) -> Optional[SpherePlane]:
    c = normalize3(center)
    q = normalize3(radius_point)
    if c == (0.0, 0.0, 0.0) or q == (0.0, 0.0, 0.0):
        return None
    return SpherePlane(c, math.cos(spherical_distance(c, q)))


def derive_sphere_great_circle(doc: ConstructionDoc, line: Line) -> Optional[SpherePlane]:
    p1 = doc.point(line.p1)
    p2 = doc.point(line.p2)
    if p1 is None or p2 is None or p1.xyz is None or p2.xyz is None:
        return None
    return great_circle_from_coords(p1.xyz, p2.xyz)


def derive_sphere_circle(doc: ConstructionDoc, circle: Circle) -> Optional[SpherePlane]:
    c0 = doc.point(circle.center)
    r0 = doc.point(circle.radius_point)
    if c0 is None or r0 is None or c0.xyz is None or r0.xyz is None:
        return None
    return sphere_circle_from_coords(c0.xyz, r0.xyz)


def derive_curve(
    mode: GeometryMode, doc: ConstructionDoc, ref: CurveRef
) -> Optional[Union[Curve2D, SpherePlane]]:
    """Derive the curve a ``CurveRef`` names: a ``SpherePlane`` on the sphere."""

    if ref.kind == "line":
        line = doc.line(ref.id)
        if line is None:
            return None
        if mode is GeometryMode.SPHERICAL:
            return derive_sphere_great_circle(doc, line)
        return derive_2d_line_curve(mode, doc, line)
    circle = doc.circle(ref.id)
    if circle is None:
        return None
    if mode is GeometryMode.SPHERICAL:
        return derive_sphere_circle(doc, circle)
    return derive_2d_circle_curve(mode, doc, circle)


def is_2d_point_in_domain(mode: GeometryMode, p: Sequence[float]) -> bool:
    if uses_poincare_internal_chart(mode):
        return p[0] * p[0] + p[1] * p[1] < 1.0 - DOMAIN_EPS
    if mode is GeometryMode.HYPERBOLIC_HALF_PLANE:
        return p[1] > DOMAIN_EPS
    return True


def constrain_2d_point(mode: GeometryMode, p: Sequence[float]) -> Vec2:
    """Project ``p`` back into the model domain (used while dragging)."""

    x, y = float(p[0]), float(p[1])
    if uses_poincare_internal_chart(mode):
        r = math.hypot(x, y)
        if r >= 1.0:
            k = (1.0 - CONSTRAIN_EPS) / (r or 1.0)
            return (x * k, y * k)
    if mode is GeometryMode.HYPERBOLIC_HALF_PLANE and y <= 0.0:
        return (x, CONSTRAIN_EPS)
    return (x, y)


__all__ = [
    "euclid_dist",
    "line_curve_from_coords",
    "circle_curve_from_coords",
    "derive_2d_line_curve",
    "derive_2d_circle_curve",
    "great_circle_from_coords",
    "sphere_circle_from_coords",
    "derive_sphere_great_circle",
    "derive_sphere_circle",
    "derive_curve",
    "is_2d_point_in_domain",
    "constrain_2d_point",
]
