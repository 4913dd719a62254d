"""Conversions between the charts of hyperbolic space.

Poincaré disk, Klein disk and hyperboloid documents all store points in one
canonical Poincaré-disk chart; the upper half-plane connects to it through the
Cayley transform.  Functions that can leave the model return ``None`` or a
clamped point rather than raising.
"""

from __future__ import annotations

import math
from typing import Optional, Sequence

from .types import GeometryMode, HyperbolicChart, Vec2, Vec3

DISK_EPS = 1e-9
HALF_PLANE_MIN_Y = 1e-9


def is_inside_poincare_disk(p: Sequence[float]) -> bool:
    return p[0] * p[0] + p[1] * p[1] < 1.0 - DISK_EPS


def clamp_to_poincare_disk(p: Sequence[float]) -> Vec2:
    """Radially pull points at or beyond the boundary back inside the disk."""

    x, y = float(p[0]), float(p[1])
    r = math.hypot(x, y)
    if r < 1.0 - DISK_EPS:
        return (x, y)
    k = (1.0 - DISK_EPS) / (r or 1.0)
    return (x * k, y * k)


def poincare_translate(z: Sequence[float], t: Sequence[float]) -> Vec2:
    """Disk automorphism ``(z + t) / (1 + conj(t) z)`` sending 0 to ``t``."""

    tx = float(t[0]) if math.isfinite(t[0]) else 0.0
    ty = float(t[1]) if math.isfinite(t[1]) else 0.0
    zx, zy = float(z[0]), float(z[1])
    if abs(tx) < 1e-14 and abs(ty) < 1e-14:
        return (zx, zy)

    a = zx + tx
    b = zy + ty
    u = 1.0 + tx * zx + ty * zy
    v = tx * zy - ty * zx
    den = u * u + v * v
    if not den > 1e-14:
        return clamp_to_poincare_disk((zx, zy))
    return clamp_to_poincare_disk(((a * u + b * v) / den, (b * u - a * v) / den))


def poincare_translate_inverse(z: Sequence[float], t: Sequence[float]) -> Vec2:
    return poincare_translate(z, (-t[0], -t[1]))


def poincare_to_half_plane(p: Sequence[float]) -> Vec2:
    """Cayley transform from the Poincaré disk to the upper half-plane."""

    x, y = float(p[0]), float(p[1])
    den = x * x + (1.0 - y) * (1.0 - y)
    if den <= 1e-12:
        # The boundary point i maps to infinity.
        return (0.0, 1e6)
    hx = 2.0 * x / den
    hy = (1.0 - x * x - y * y) / den
    if not hy > 0.0:
        hy = HALF_PLANE_MIN_Y
    return (hx, hy)


def half_plane_to_poincare(p: Sequence[float]) -> Vec2:
    """Inverse Cayley transform; the input is clamped to ``y > 1e-9``."""

    x = float(p[0])
    y = float(p[1]) if p[1] > HALF_PLANE_MIN_Y else HALF_PLANE_MIN_Y
    den = x * x + (1.0 + y) * (1.0 + y)
    if den <= 1e-12:
        return (0.0, 0.0)
    out_x = 2.0 * x / den
    out_y = (x * x + y * y - 1.0) / den
    r2 = out_x * out_x + out_y * out_y
    if r2 >= 1.0:
        k = (1.0 - DISK_EPS) / (math.sqrt(r2) or 1.0)
        out_x *= k
        out_y *= k
    return (out_x, out_y)


def poincare_to_klein(p: Sequence[float]) -> Vec2:
    x, y = float(p[0]), float(p[1])
    den = 1.0 + x * x + y * y
    return (2.0 * x / den, 2.0 * y / den)


def klein_to_poincare(k: Sequence[float]) -> Optional[Vec2]:
    x, y = float(k[0]), float(k[1])
    r2 = x * x + y * y
    if r2 >= 1.0:
        return None
    den = 1.0 + math.sqrt(max(0.0, 1.0 - r2))
    return (x / den, y / den)


def poincare_to_hyperboloid(p: Sequence[float]) -> Vec3:
    """Lift to the upper sheet ``z^2 - x^2 - y^2 = 1``."""

    x, y = float(p[0]), float(p[1])
    r2 = x * x + y * y
    den = 1.0 - r2
    if den <= 1e-12:
        k = 1e6
        return (x * k, y * k, k)
    return (2.0 * x / den, 2.0 * y / den, (1.0 + r2) / den)


def hyperboloid_to_poincare(h: Sequence[float]) -> Optional[Vec2]:
    den = float(h[2]) + 1.0
    if den <= 1e-12:
        return None
    return clamp_to_poincare_disk((float(h[0]) / den, float(h[1]) / den))


def poincare_distance(p: Sequence[float], q: Sequence[float]) -> float:
    """Curvature -1 distance in the Poincaré disk; ``inf`` outside the disk."""

    dp = 1.0 - (p[0] * p[0] + p[1] * p[1])
    dq = 1.0 - (q[0] * q[0] + q[1] * q[1])
    dx = p[0] - q[0]
    dy = p[1] - q[1]
    den = dp * dq
    if den <= 0.0 or dp <= 0.0:
        return math.inf
    cosh = 1.0 + 2.0 * (dx * dx + dy * dy) / den
    return math.acosh(max(1.0, cosh))


def half_plane_distance(p: Sequence[float], q: Sequence[float]) -> float:
    """Curvature -1 distance in the upper half-plane; ``inf`` for ``y <= 0``."""

    if p[1] <= 0.0 or q[1] <= 0.0:
        return math.inf
    dx = p[0] - q[0]
    dy = p[1] - q[1]
    cosh = 1.0 + (dx * dx + dy * dy) / (2.0 * p[1] * q[1])
    return math.acosh(max(1.0, cosh))


def spherical_distance(p: Sequence[float], q: Sequence[float]) -> float:
    """Angle between two unit vectors."""

    d = p[0] * q[0] + p[1] * q[1] + p[2] * q[2]
    return math.acos(min(1.0, max(-1.0, d)))


def is_hyperbolic_mode(mode: GeometryMode) -> bool:
    return mode in (GeometryMode.HYPERBOLIC_POINCARE, GeometryMode.HYPERBOLIC_HALF_PLANE)


def uses_poincare_internal_chart(mode: GeometryMode) -> bool:
    return mode is GeometryMode.HYPERBOLIC_POINCARE


def hyperbolic_to_poincare_point(mode: GeometryMode, p: Sequence[float]) -> Vec2:
    """Map a stored hyperbolic point of ``mode`` to the Poincaré chart."""

    if mode is GeometryMode.HYPERBOLIC_HALF_PLANE:
        return half_plane_to_poincare(p)
    return clamp_to_poincare_disk(p)


def poincare_to_hyperbolic_point(mode: GeometryMode, p: Sequence[float]) -> Vec2:
    inside = clamp_to_poincare_disk(p)
    if mode is GeometryMode.HYPERBOLIC_HALF_PLANE:
        return poincare_to_half_plane(inside)
    return inside


def internal_to_display_2d(chart: HyperbolicChart, p: Sequence[float]) -> Vec2:
    """Map a Poincaré-chart point to the flat display chart."""

    if chart is HyperbolicChart.KLEIN:
        return poincare_to_klein(p)
    return (float(p[0]), float(p[1]))


def display_2d_to_internal(chart: HyperbolicChart, p: Sequence[float]) -> Optional[Vec2]:
    if chart is HyperbolicChart.KLEIN:
        mapped = klein_to_poincare(p)
        return clamp_to_poincare_disk(mapped) if mapped is not None else None
    return (float(p[0]), float(p[1]))


__all__ = [
    "DISK_EPS",
    "is_inside_poincare_disk",
    "clamp_to_poincare_disk",
    "poincare_translate",
    "poincare_translate_inverse",
    "poincare_to_half_plane",
    "half_plane_to_poincare",
    "poincare_to_klein",
    "klein_to_poincare",
    "poincare_to_hyperboloid",
    "hyperboloid_to_poincare",
    "poincare_distance",
    "half_plane_distance",
    "spherical_distance",
    "is_hyperbolic_mode",
    "uses_poincare_internal_chart",
    "hyperbolic_to_poincare_point",
    "poincare_to_hyperbolic_point",
    "internal_to_display_2d",
    "display_2d_to_internal",
]
