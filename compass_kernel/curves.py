"""Implicit 2D lines and circles and their intersections.

All routines work in chart coordinates and only rely on basic Python math so
they stay cheap enough to run every frame.  Degenerate requests (coincident
points, collinear triples, parallel lines, concentric circles) return ``None``
or an empty list instead of raising.
"""

from __future__ import annotations

import math
from typing import List, Optional, Sequence

from .types import EPS, CircleCurve, Curve2D, LineCurve, Vec2


def _as_point(pt: Sequence[float]) -> Vec2:
    return (float(pt[0]), float(pt[1]))


def _cross(a: Sequence[float], b: Sequence[float]) -> float:
    return float(a[0]) * float(b[1]) - float(a[1]) * float(b[0])


def line_through(p: Sequence[float], q: Sequence[float]) -> Optional[LineCurve]:
    """Return the normalized implicit line through ``p`` and ``q``."""

    px, py = _as_point(p)
    dx = float(q[0]) - px
    dy = float(q[1]) - py
    n = math.hypot(dx, dy)
    if n < EPS:
        return None
    a = dy / n
    b = -dx / n
    return LineCurve(a, b, -(a * px + b * py))


def circle_through3(
    p1: Sequence[float], p2: Sequence[float], p3: Sequence[float]
) -> Optional[CircleCurve]:
    """Return the circle through three points, ``None`` if they are collinear."""

    x1, y1 = _as_point(p1)
    x2, y2 = _as_point(p2)
    x3, y3 = _as_point(p3)
    a = x2 - x1
    b = y2 - y1
    c = x3 - x1
    d = y3 - y1
    e = a * (x1 + x2) + b * (y1 + y2)
    f = c * (x1 + x3) + d * (y1 + y3)
    g = 2.0 * (a * (y3 - y2) - b * (x3 - x2))
    if abs(g) < 1e-10:
        return None
    cx = (d * e - b * f) / g
    cy = (a * f - c * e) / g
    r = math.hypot(x1 - cx, y1 - cy)
    if not math.isfinite(r):
        return None
    return CircleCurve(cx, cy, r)


def intersect_line_line(l1: LineCurve, l2: LineCurve) -> List[Vec2]:
    det = l1.a * l2.b - l2.a * l1.b
    if abs(det) < 1e-12:
        return []
    x = (l1.b * l2.c - l2.b * l1.c) / det
    y = (l2.a * l1.c - l1.a * l2.c) / det
    return [(x, y)]


def intersect_line_circle(line: LineCurve, circle: CircleCurve) -> List[Vec2]:
    """Intersect by dropping the centre onto the line.

    The two roots are ordered along the line direction ``(-b, a)``: the first is
    the one further along it.
    """

    a, b, c = line.a, line.b, line.c
    cx, cy, r = circle.cx, circle.cy, circle.r
    dist_signed = a * cx + b * cy + c
    dist = abs(dist_signed)
    tol = 1e-12 * max(1.0, r)
    if dist > r + tol:
        return []

    x0 = cx - a * dist_signed
    y0 = cy - b * dist_signed
    if abs(dist - r) < tol:
        return [(x0, y0)]

    # (r - d)(r + d) keeps precision when r and d are large and close.
    h = math.sqrt(max(0.0, (r - dist) * (r + dist)))
    dx = -b
    dy = a
    return [(x0 + dx * h, y0 + dy * h), (x0 - dx * h, y0 - dy * h)]


def intersect_circle_circle(c1: CircleCurve, c2: CircleCurve) -> List[Vec2]:
    """Intersect through the radical line of the two circles."""

    vx = c2.cx - c1.cx
    vy = c2.cy - c1.cy
    d = math.hypot(vx, vy)
    if d < 1e-12:
        return []
    r0 = c1.r
    r1 = c2.r
    tol = 1e-12 * max(1.0, r0, r1, d)
    if d > r0 + r1 + tol:
        return []
    if d < abs(r0 - r1) - tol:
        return []

    # Distance from c1 to the radical line; (r0 - r1)(r0 + r1) avoids cancellation.
    along = (d * d + (r0 - r1) * (r0 + r1)) / (2.0 * d)
    h = math.sqrt(max(0.0, (r0 - along) * (r0 + along)))
    ux = vx / d
    uy = vy / d
    xm = c1.cx + along * ux
    ym = c1.cy + along * uy
    if h <= tol:
        return [(xm, ym)]
    return [(xm - uy * h, ym + ux * h), (xm + uy * h, ym - ux * h)]


def intersect_curves(a: Curve2D, b: Curve2D) -> List[Vec2]:
    """Return the 0, 1 or 2 discrete intersection points of two curves.

    Coincident curves have no *discrete* intersection and yield ``[]``.
    """

    if isinstance(a, LineCurve) and isinstance(b, LineCurve):
        return intersect_line_line(a, b)
    if isinstance(a, LineCurve):
        return intersect_line_circle(a, b)
    if isinstance(b, LineCurve):
        return intersect_line_circle(b, a)
    return intersect_circle_circle(a, b)


def signed_distance_to_curve(curve: Curve2D, p: Sequence[float]) -> float:
    """Signed distance to a line, radial distance (positive outside) to a circle."""

    x, y = _as_point(p)
    if isinstance(curve, LineCurve):
        return curve.a * x + curve.b * y + curve.c
    return math.hypot(x - curve.cx, y - curve.cy) - curve.r


def project_to_curve(curve: Curve2D, p: Sequence[float]) -> Vec2:
    """Return the closest point of ``curve`` to ``p``."""

    x, y = _as_point(p)
    if isinstance(curve, LineCurve):
        s = curve.a * x + curve.b * y + curve.c
        return (x - curve.a * s, y - curve.b * s)
    dx = x - curve.cx
    dy = y - curve.cy
    n = math.hypot(dx, dy)
    if n < 1e-12:
        return (curve.cx + curve.r, curve.cy)
    return (curve.cx + dx * curve.r / n, curve.cy + dy * curve.r / n)


def poincare_geodesic(p: Sequence[float], q: Sequence[float]) -> Optional[Curve2D]:
    """Geodesic of the Poincaré disk through ``p`` and ``q``.

    This is the circle orthogonal to the unit circle, or the diameter when both
    points are collinear with the origin.
    """

    px, py = _as_point(p)
    qx, qy = _as_point(q)
    det = _cross((px, py), (qx, qy))
    if abs(det) < 1e-12:
        return line_through((px, py), (qx, qy))
    b1 = (px * px + py * py + 1.0) / 2.0
    b2 = (qx * qx + qy * qy + 1.0) / 2.0
    cx = (b1 * qy - b2 * py) / det
    cy = (px * b2 - qx * b1) / det
    r_sq = cx * cx + cy * cy - 1.0
    if r_sq <= 0.0:
        return None
    return CircleCurve(cx, cy, math.sqrt(r_sq))


def half_plane_geodesic(p: Sequence[float], q: Sequence[float]) -> Optional[Curve2D]:
    """Geodesic of the upper half-plane: a vertical line or a semicircle on y=0."""

    px, py = _as_point(p)
    qx, qy = _as_point(q)
    dx = qx - px
    if abs(dx) < 1e-10:
        return LineCurve(1.0, 0.0, -px)
    num = dx * (qx + px) + (qy - py) * (qy + py)
    center_x = num / (2.0 * dx)
    r = math.hypot(px - center_x, py)
    if not math.isfinite(r) or r < EPS:
        return None
    return CircleCurve(center_x, 0.0, r)


__all__ = [
    "line_through",
    "circle_through3",
    "intersect_line_line",
    "intersect_line_circle",
    "intersect_circle_circle",
    "intersect_curves",
    "signed_distance_to_curve",
    "project_to_curve",
    "poincare_geodesic",
    "half_plane_geodesic",
]
