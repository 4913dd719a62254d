"""Planar helpers shared by the tool builder and replay.

Line parameters are measured in a line's own frame: the origin is its first
defining point and the direction is the unit vector towards the second one.
"""

from __future__ import annotations

import math
from typing import Optional, Sequence, Tuple


def _vec2(a: Sequence[float], b: Sequence[float]) -> Tuple[float, float]:
    return float(b[0]) - float(a[0]), float(b[1]) - float(a[1])


def _cross2(a: Tuple[float, float], b: Tuple[float, float]) -> float:
    return a[0] * b[1] - a[1] * b[0]


def _dot2(a: Tuple[float, float], b: Tuple[float, float]) -> float:
    return a[0] * b[0] + a[1] * b[1]


def line_direction(p1: Sequence[float], p2: Sequence[float]) -> Optional[Tuple[float, float]]:
    dx, dy = _vec2(p1, p2)
    n = math.hypot(dx, dy)
    if not math.isfinite(n) or n < 1e-12:
        return None
    return dx / n, dy / n


def line_span(p1: Sequence[float], p2: Sequence[float]) -> float:
    return math.hypot(*_vec2(p1, p2))


def line_frame_param(p1: Sequence[float], p2: Sequence[float], p: Sequence[float]) -> Optional[float]:
    direction = line_direction(p1, p2)
    if direction is None:
        return None
    return _dot2(_vec2(p1, p), direction)


def line_frame_point(p1: Sequence[float], p2: Sequence[float], t: float) -> Optional[Tuple[float, float]]:
    direction = line_direction(p1, p2)
    if direction is None:
        return None
    return float(p1[0]) + t * direction[0], float(p1[1]) + t * direction[1]


def side_sign(origin: Sequence[float], toward: Sequence[float], p: Sequence[float]) -> int:
    """Sign of the turn ``origin -> toward -> p``; 0 when collinear."""

    cross = _cross2(_vec2(origin, toward), _vec2(origin, p))
    if not math.isfinite(cross) or cross == 0.0:
        return 0
    return 1 if cross > 0.0 else -1


def signed_angle(origin: Sequence[float], a: Sequence[float], b: Sequence[float]) -> Optional[float]:
    """Signed angle from ``a`` to ``b`` seen from ``origin``."""

    v1 = _vec2(origin, a)
    v2 = _vec2(origin, b)
    angle = math.atan2(_cross2(v1, v2), _dot2(v1, v2))
    return angle if math.isfinite(angle) else None


def polar_angle(center: Sequence[float], p: Sequence[float]) -> Optional[float]:
    angle = math.atan2(float(p[1]) - float(center[1]), float(p[0]) - float(center[0]))
    return angle if math.isfinite(angle) else None


def arc_fraction(
    center: Sequence[float], a: Sequence[float], b: Sequence[float], p: Sequence[float]
) -> Optional[float]:
    """Position of ``p`` on the circular arc ``a -> b`` about ``center``.

    0 is ``a``, 1 is ``b``; the arc is the shorter turn from ``a`` to ``b``.
    Values outside ``[0, 1]`` lie beyond an endpoint.
    """

    span = signed_angle(center, a, b)
    turn = signed_angle(center, a, p)
    if span is None or turn is None or abs(span) < 1e-12:
        return None
    return turn / span


def arc_angle(center: Sequence[float], a: Sequence[float], b: Sequence[float], t: float) -> Optional[float]:
    """Polar angle about ``center`` of the arc position ``t`` (see :func:`arc_fraction`)."""

    start = polar_angle(center, a)
    span = signed_angle(center, a, b)
    if start is None or span is None or abs(span) < 1e-12:
        return None
    return start + t * span


def angle_gap(a: float, b: float) -> float:
    """Absolute difference of two angles, wrapped into ``[0, pi]``."""

    d = (a - b + math.pi) % (2.0 * math.pi) - math.pi
    return abs(d)


def dist2(a: Sequence[float], b: Sequence[float]) -> float:
    return math.hypot(*_vec2(a, b))


__all__ = [
    "line_direction",
    "line_span",
    "line_frame_param",
    "line_frame_point",
    "side_sign",
    "signed_angle",
    "polar_angle",
    "arc_fraction",
    "arc_angle",
    "angle_gap",
    "dist2",
]
