"""Shared value types: geometry modes, charts and derived curves."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Dict, Tuple, Union

Vec2 = Tuple[float, float]
Vec3 = Tuple[float, float, float]

EPS = 1e-9


class GeometryMode(str, enum.Enum):
    """The geometric model a construction document lives in."""

    EUCLIDEAN = "euclidean"
    INVERSIVE_EUCLIDEAN = "inversive_euclidean"
    SPHERICAL = "spherical"
    HYPERBOLIC_POINCARE = "hyperbolic_poincare"
    HYPERBOLIC_HALF_PLANE = "hyperbolic_half_plane"


class HyperbolicChart(str, enum.Enum):
    """Display charts sharing the Poincaré-disk internal chart."""

    POINCARE = "poincare"
    KLEIN = "klein"
    HYPERBOLOID = "hyperboloid"


@dataclass(frozen=True)
class LineCurve:
    """Implicit line ``a*x + b*y + c = 0`` with unit normal ``(a, b)``."""

    a: float
    b: float
    c: float

    kind = "line"

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": "line", "a": self.a, "b": self.b, "c": self.c}


@dataclass(frozen=True)
class CircleCurve:
    """Euclidean circle in chart coordinates."""

    cx: float
    cy: float
    r: float

    kind = "circle"

    @property
    def center(self) -> Vec2:
        return (self.cx, self.cy)

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": "circle", "cx": self.cx, "cy": self.cy, "r": self.r}


Curve2D = Union[LineCurve, CircleCurve]


@dataclass(frozen=True)
class SpherePlane:
    """Plane ``normal . x = d`` cut with the unit sphere."""

    normal: Vec3
    d: float

    def to_dict(self) -> Dict[str, Any]:
        return {"normal": list(self.normal), "d": self.d}


def curve_from_dict(data: Dict[str, Any]) -> Curve2D:
    kind = data.get("kind")
    if kind == "line":
        return LineCurve(float(data["a"]), float(data["b"]), float(data["c"]))
    if kind == "circle":
        return CircleCurve(float(data["cx"]), float(data["cy"]), float(data["r"]))
    raise ValueError(f"Unknown curve kind {kind!r}")


__all__ = [
    "EPS",
    "Vec2",
    "Vec3",
    "GeometryMode",
    "HyperbolicChart",
    "LineCurve",
    "CircleCurve",
    "Curve2D",
    "SpherePlane",
    "curve_from_dict",
]
