"""Unit-sphere algebra: plane/plane/sphere intersection and stereographic chart."""

from __future__ import annotations

import math
from typing import List, Optional, Sequence

import numpy as np

from .types import SpherePlane, Vec2, Vec3

POLE_EPS = 1e-9
MAX_PLANE_COORD = 1e6


def _as_vec3(v: Sequence[float]) -> np.ndarray:
    return np.asarray([float(v[0]), float(v[1]), float(v[2])], dtype=float)


def _to_tuple(v: np.ndarray) -> Vec3:
    return (float(v[0]), float(v[1]), float(v[2]))


def normalize3(v: Sequence[float]) -> Vec3:
    arr = _as_vec3(v)
    n = float(np.linalg.norm(arr))
    if n == 0.0:
        return (0.0, 0.0, 0.0)
    return _to_tuple(arr / n)


def intersect_sphere_planes(p1: SpherePlane, p2: SpherePlane) -> List[Vec3]:
    """Intersect two sphere curves given as planes ``n . x = d``.

    The planes meet in the line ``x0 + t v`` with ``v = n1 x n2`` and ``x0`` the
    point of that line closest to the origin; the line is then cut with the unit
    sphere.  Returned points are renormalised onto the sphere.
    """

    n1 = _as_vec3(p1.normal)
    n2 = _as_vec3(p2.normal)
    v = np.cross(n1, n2)
    v_len_sq = float(np.dot(v, v))
    if v_len_sq < 1e-14:
        return []

    x0 = (p1.d * np.cross(n2, v) + p2.d * np.cross(v, n1)) / v_len_sq

    qa = v_len_sq
    qb = 2.0 * float(np.dot(x0, v))
    qc = float(np.dot(x0, x0)) - 1.0
    disc = qb * qb - 4.0 * qa * qc
    if disc < -1e-12:
        return []
    if abs(disc) < 1e-12:
        t = -qb / (2.0 * qa)
        return [normalize3(x0 + t * v)]
    sqrt_disc = math.sqrt(max(0.0, disc))
    t1 = (-qb + sqrt_disc) / (2.0 * qa)
    t2 = (-qb - sqrt_disc) / (2.0 * qa)
    return [normalize3(x0 + t1 * v), normalize3(x0 + t2 * v)]


def nearest_point_on_sphere_plane(plane: SpherePlane, hint: Sequence[float]) -> Optional[Vec3]:
    """Closest point of the circle ``{|x| = 1, n . x = d}`` to ``hint``."""

    n = _as_vec3(normalize3(plane.normal))
    d = float(plane.d)
    rr = 1.0 - d * d
    if rr < 0.0:
        return None
    h = _as_vec3(hint)
    tangent = h - float(np.dot(n, h)) * n
    t_len = float(np.linalg.norm(tangent))
    if t_len < 1e-12:
        # Hint on the axis: every point of the circle is equally close.
        ref = np.array([0.0, 0.0, 1.0]) if abs(n[2]) < 0.9 else np.array([0.0, 1.0, 0.0])
        tangent = np.cross(ref, n)
        t_len = float(np.linalg.norm(tangent))
    point = d * n + math.sqrt(max(0.0, rr)) * tangent / t_len
    return normalize3(point)


def sphere_to_stereographic(p: Sequence[float]) -> Optional[Vec2]:
    """Stereographic projection from the north pole onto ``z = 0``."""

    denom = 1.0 - float(p[2])
    if denom <= POLE_EPS:
        return None
    x = float(p[0]) / denom
    y = float(p[1]) / denom
    if not (math.isfinite(x) and math.isfinite(y)):
        return None
    if abs(x) > MAX_PLANE_COORD or abs(y) > MAX_PLANE_COORD:
        return None
    return (x, y)


def stereographic_to_sphere(w: Sequence[float]) -> Vec3:
    x, y = float(w[0]), float(w[1])
    r2 = x * x + y * y
    den = 1.0 + r2
    return normalize3((2.0 * x / den, 2.0 * y / den, (r2 - 1.0) / den))


__all__ = [
    "normalize3",
    "intersect_sphere_planes",
    "nearest_point_on_sphere_plane",
    "sphere_to_stereographic",
    "stereographic_to_sphere",
]
