"""Camera state and screen <-> model mappings for every geometry mode."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
from scipy.spatial.transform import Rotation

from .charts import (
    clamp_to_poincare_disk,
    hyperboloid_to_poincare,
    poincare_to_hyperboloid,
    poincare_translate,
    poincare_translate_inverse,
)
from .types import GeometryMode, Vec2, Vec3

DRAG_SPEED = 0.0065
PITCH_LIMIT = math.pi / 2 - 1e-3
HYPERBOLOID_CAMERA_Z = 30.0
_FIT_RADIUS = 0.92
_FIT_MARGIN_PX = 18.0


def _clamp(v: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, v))


def wrap_angle(angle: float) -> float:
    """Wrap into ``[-pi, pi)``."""

    if not math.isfinite(angle):
        return 0.0
    return (angle + math.pi) % (2.0 * math.pi) - math.pi


@dataclass
class View2D:
    scale: float
    offset_x: float = 0.0
    offset_y: float = 0.0

    kind = "2d"

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": "2d", "scale": self.scale, "offset_x": self.offset_x, "offset_y": self.offset_y}


@dataclass
class SphereView:
    """Orbit camera for the sphere and the hyperboloid."""

    yaw: float = 0.0
    pitch: float = 0.0
    zoom: float = 1.0
    roll: float = 0.0
    chart_offset_x: float = 0.0
    chart_offset_y: float = 0.0

    kind = "sphere"

    @property
    def chart_offset(self) -> Vec2:
        return (self.chart_offset_x, self.chart_offset_y)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": "sphere",
            "yaw": self.yaw,
            "pitch": self.pitch,
            "zoom": self.zoom,
            "roll": self.roll,
            "chart_offset_x": self.chart_offset_x,
            "chart_offset_y": self.chart_offset_y,
        }


ViewState = Union[View2D, SphereView]


def view_from_dict(data: Dict[str, Any]) -> ViewState:
    kind = data.get("kind")
    if kind == "2d":
        return View2D(
            scale=float(data["scale"]),
            offset_x=float(data.get("offset_x", 0.0)),
            offset_y=float(data.get("offset_y", 0.0)),
        )
    if kind == "sphere":
        return SphereView(
            yaw=float(data.get("yaw", 0.0)),
            pitch=float(data.get("pitch", 0.0)),
            zoom=float(data.get("zoom", 1.0)),
            roll=float(data.get("roll", 0.0)),
            chart_offset_x=float(data.get("chart_offset_x", 0.0)),
            chart_offset_y=float(data.get("chart_offset_y", 0.0)),
        )
    raise ValueError(f"Unknown view kind {kind!r}")


def default_view(mode: GeometryMode) -> ViewState:
    if mode is GeometryMode.SPHERICAL:
        return SphereView(yaw=0.6, pitch=-0.25, zoom=1.0)
    if mode is GeometryMode.HYPERBOLIC_POINCARE:
        return View2D(scale=260.0)
    if mode is GeometryMode.HYPERBOLIC_HALF_PLANE:
        return View2D(scale=120.0)
    return View2D(scale=90.0)


def default_hyperboloid_view() -> SphereView:
    return SphereView(yaw=0.0, pitch=-0.9, zoom=1.0)


# --- 2D views ---------------------------------------------------------------


def world_to_screen(view: View2D, p: Sequence[float]) -> Vec2:
    return (p[0] * view.scale + view.offset_x, -p[1] * view.scale + view.offset_y)


def screen_to_world(view: View2D, p: Sequence[float]) -> Vec2:
    return ((p[0] - view.offset_x) / view.scale, -(p[1] - view.offset_y) / view.scale)


def pan_2d(view: View2D, dx_px: float, dy_px: float) -> None:
    view.offset_x += dx_px
    view.offset_y += dy_px


def zoom_2d_at(view: View2D, factor: float, anchor_screen: Sequence[float]) -> None:
    """Scale about a fixed screen anchor."""

    before = screen_to_world(view, anchor_screen)
    view.scale = _clamp(view.scale * factor, 10.0, 6000.0)
    after = world_to_screen(view, before)
    view.offset_x += anchor_screen[0] - after[0]
    view.offset_y += anchor_screen[1] - after[1]


# --- orbit camera -----------------------------------------------------------


def view_rotation(view: SphereView) -> Rotation:
    """Roll about z, then yaw about y, then pitch about x (extrinsic)."""

    roll = view.roll if math.isfinite(view.roll) else 0.0
    return Rotation.from_euler("zyx", [roll, view.yaw, view.pitch])


def rotate_to_view(view: SphereView, p: Sequence[float]) -> Vec3:
    out = view_rotation(view).apply(np.asarray(p, dtype=float))
    return (float(out[0]), float(out[1]), float(out[2]))


def rotate_from_view(view: SphereView, p: Sequence[float]) -> Vec3:
    out = view_rotation(view).inv().apply(np.asarray(p, dtype=float))
    return (float(out[0]), float(out[1]), float(out[2]))


def rotate_by_drag(view: SphereView, dx_px: float, dy_px: float) -> None:
    view.yaw += dx_px * DRAG_SPEED
    view.pitch = _clamp(view.pitch + dy_px * DRAG_SPEED, -PITCH_LIMIT, PITCH_LIMIT)


def rotate_hyperboloid_by_drag(view: SphereView, dx_px: float, dy_px: float) -> None:
    """Horizontal drag spins about the model axis, vertical drag tilts."""

    view.roll = wrap_angle(view.roll + dx_px * DRAG_SPEED)
    view.pitch = _clamp(view.pitch + dy_px * DRAG_SPEED, -PITCH_LIMIT, PITCH_LIMIT)


def zoom_sphere(view: SphereView, wheel_delta_y: float) -> None:
    factor = 0.92 if wheel_delta_y > 0 else 1.08
    view.zoom = _clamp(view.zoom * factor, 0.35, 3.0)


# --- sphere -----------------------------------------------------------------


@dataclass(frozen=True)
class SphereViewport:
    cx: float
    cy: float
    r: float


def sphere_viewport(view: SphereView, width: float, height: float) -> SphereViewport:
    return SphereViewport(cx=width / 2.0, cy=height / 2.0, r=min(width, height) * 0.42 * view.zoom)


def project_sphere(view_point: Sequence[float], vp: SphereViewport) -> Vec3:
    """Orthographic projection; the third component is the depth."""

    return (vp.cx + view_point[0] * vp.r, vp.cy - view_point[1] * vp.r, float(view_point[2]))


def screen_to_sphere_point(view: SphereView, screen: Sequence[float], vp: SphereViewport) -> Optional[Vec3]:
    """Point of the front hemisphere under ``screen``, in object coordinates."""

    u = (screen[0] - vp.cx) / vp.r
    v = -(screen[1] - vp.cy) / vp.r
    rr = u * u + v * v
    if rr > 1.0:
        return None
    return rotate_from_view(view, (u, v, math.sqrt(max(0.0, 1.0 - rr))))


# --- hyperboloid ------------------------------------------------------------


@dataclass(frozen=True)
class HyperboloidViewport:
    cx: float
    cy: float
    scale: float
    camera_z: float = HYPERBOLOID_CAMERA_Z


def _minkowski_dot(a: Sequence[float], b: Sequence[float]) -> float:
    return a[2] * b[2] - a[0] * b[0] - a[1] * b[1]


def _projection_bounds(
    view: SphereView, radius: float, camera_z: float, steps: int
) -> Optional[Tuple[float, float, float, float]]:
    angles = np.linspace(0.0, 2.0 * math.pi, steps + 1)
    rotation = view_rotation(view)
    lifted = np.array([poincare_to_hyperboloid((radius * math.cos(t), radius * math.sin(t))) for t in angles])
    rotated = rotation.apply(lifted)
    den = camera_z - rotated[:, 2]
    mask = den > 1e-5
    if not mask.any():
        return None
    u = rotated[mask, 0] / den[mask]
    v = -rotated[mask, 1] / den[mask]
    return float(u.min()), float(u.max()), float(v.min()), float(v.max())


def hyperboloid_viewport(view: SphereView, width: float, height: float) -> HyperboloidViewport:
    """Fit the scale so a ring near the chart boundary stays on screen."""

    cx = width / 2.0
    cy = height * 0.47
    base = min(width, height) * 0.44
    min_scale = max(52.0, min(width, height) * 0.16)
    bounds = _projection_bounds(view, _FIT_RADIUS, HYPERBOLOID_CAMERA_Z, 196)
    if bounds is None:
        return HyperboloidViewport(cx, cy, max(min_scale, base) * view.zoom)
    min_u, max_u, min_v, max_v = bounds
    limits: List[float] = []
    if min_u < 0:
        limits.append((cx - _FIT_MARGIN_PX) / -min_u)
    if max_u > 0:
        limits.append((width - cx - _FIT_MARGIN_PX) / max_u)
    if min_v < 0:
        limits.append((cy - _FIT_MARGIN_PX) / -min_v)
    if max_v > 0:
        limits.append((height - cy - _FIT_MARGIN_PX) / max_v)
    safe_base = min(limits) * 0.96 if limits else base
    scale = max(min_scale, min(base, safe_base)) * view.zoom
    return HyperboloidViewport(cx, cy, scale)


def project_poincare_on_hyperboloid(
    view: SphereView, vp: HyperboloidViewport, p: Sequence[float]
) -> Optional[Vec3]:
    """Perspective projection of a Poincaré point lifted to the hyperboloid.

    Returns ``(screen_x, screen_y, depth)`` or ``None`` behind the camera.
    """

    shifted = clamp_to_poincare_disk(poincare_translate(p, view.chart_offset))
    v = rotate_to_view(view, poincare_to_hyperboloid(shifted))
    den = vp.camera_z - v[2]
    if den <= 1e-5:
        return None
    k = vp.scale / den
    return (vp.cx + v[0] * k, vp.cy - v[1] * k, v[2])


def screen_to_hyperboloid_poincare(
    view: SphereView, screen: Sequence[float], vp: HyperboloidViewport
) -> Optional[Vec2]:
    """Inverse of :func:`project_poincare_on_hyperboloid`.

    Intersects the view ray with the rotated hyperboloid by solving the quadratic
    of the Minkowski form ``z1 z2 - x1 x2 - y1 y2`` and keeps the nearest root in
    front of the camera that lands on the upper sheet.
    """

    u = (screen[0] - vp.cx) / vp.scale
    v = -(screen[1] - vp.cy) / vp.scale

    direction = rotate_from_view(view, (u, v, -1.0))
    origin = rotate_from_view(view, (0.0, 0.0, vp.camera_z))

    qa = _minkowski_dot(direction, direction)
    qb = 2.0 * _minkowski_dot(direction, origin)
    qc = _minkowski_dot(origin, origin) - 1.0

    roots: List[float] = []
    if abs(qa) < 1e-12:
        if abs(qb) < 1e-12:
            return None
        roots.append(-qc / qb)
    else:
        disc = qb * qb - 4.0 * qa * qc
        if disc < 0.0:
            return None
        sd = math.sqrt(disc)
        roots.extend([(-qb - sd) / (2.0 * qa), (-qb + sd) / (2.0 * qa)])

    best: Optional[Vec2] = None
    best_t = math.inf
    for t in roots:
        if not math.isfinite(t) or t <= 1e-8 or t >= best_t:
            continue
        world = rotate_from_view(view, (u * t, v * t, vp.camera_z - t))
        if not world[2] > 0.0:
            continue
        p = hyperboloid_to_poincare(world)
        if p is None:
            continue
        best_t = t
        best = p
    if best is None:
        return None
    return clamp_to_poincare_disk(poincare_translate_inverse(best, view.chart_offset))


__all__ = [
    "View2D",
    "SphereView",
    "ViewState",
    "SphereViewport",
    "HyperboloidViewport",
    "view_from_dict",
    "default_view",
    "default_hyperboloid_view",
    "world_to_screen",
    "screen_to_world",
    "pan_2d",
    "zoom_2d_at",
    "view_rotation",
    "rotate_to_view",
    "rotate_from_view",
    "rotate_by_drag",
    "rotate_hyperboloid_by_drag",
    "zoom_sphere",
    "wrap_angle",
    "sphere_viewport",
    "project_sphere",
    "screen_to_sphere_point",
    "hyperboloid_viewport",
    "project_poincare_on_hyperboloid",
    "screen_to_hyperboloid_poincare",
]
