"""Construction documents: points, lines and circles of one geometry mode."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .types import GeometryMode, Vec2, Vec3

CURVE_KINDS = ("line", "circle")
OBJECT_KINDS = ("point", "line", "circle")
STAR_LABEL = "∞"

_LETTERS_RE = re.compile(r"^[a-z]+$", re.IGNORECASE)


@dataclass(frozen=True)
class ObjectRef:
    """Reference to a point, line or circle of a document."""

    kind: str
    id: str

    def __post_init__(self) -> None:
        if self.kind not in OBJECT_KINDS:
            raise ValueError(f"Unknown object kind {self.kind!r}")

    @property
    def key(self) -> str:
        return f"{self.kind}:{self.id}"

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "id": self.id}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ObjectRef":
        return cls(str(data["kind"]), str(data["id"]))


@dataclass(frozen=True)
class CurveRef(ObjectRef):
    """Reference to a line or circle a point is constrained to."""

    def __post_init__(self) -> None:
        if self.kind not in CURVE_KINDS:
            raise ValueError(f"Unknown curve kind {self.kind!r}")


@dataclass
class Style:
    color: str = "#1f2937"
    opacity: float = 1.0

    def to_dict(self) -> Dict[str, Any]:
        return {"color": self.color, "opacity": self.opacity}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Style":
        if not data:
            return cls()
        return cls(color=str(data.get("color", cls.color)), opacity=float(data.get("opacity", cls.opacity)))


@dataclass
class Point:
    id: str
    label: str
    x: float
    y: float
    z: Optional[float] = None
    locked: bool = False
    constraints: List[CurveRef] = field(default_factory=list)
    hidden: bool = False
    style: Style = field(default_factory=Style)

    @property
    def xy(self) -> Vec2:
        return (self.x, self.y)

    @property
    def xyz(self) -> Optional[Vec3]:
        if self.z is None:
            return None
        return (self.x, self.y, self.z)

    @property
    def is_free(self) -> bool:
        return not self.locked and not self.constraints

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"id": self.id, "label": self.label, "x": self.x, "y": self.y}
        if self.z is not None:
            data["z"] = self.z
        if self.locked:
            data["locked"] = True
        if self.constraints:
            data["constraints"] = [ref.to_dict() for ref in self.constraints]
        if self.hidden:
            data["hidden"] = True
        data["style"] = self.style.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Point":
        z = data.get("z")
        return cls(
            id=str(data["id"]),
            label=str(data.get("label", "")),
            x=float(data["x"]),
            y=float(data["y"]),
            z=float(z) if z is not None else None,
            locked=bool(data.get("locked", False)),
            constraints=[CurveRef.from_dict(ref) for ref in data.get("constraints") or []],
            hidden=bool(data.get("hidden", False)),
            style=Style.from_dict(data.get("style")),
        )


@dataclass
class Line:
    id: str
    label: str
    p1: str
    p2: str
    hidden: bool = False
    style: Style = field(default_factory=Style)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"id": self.id, "label": self.label, "p1": self.p1, "p2": self.p2}
        if self.hidden:
            data["hidden"] = True
        data["style"] = self.style.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Line":
        return cls(
            id=str(data["id"]),
            label=str(data.get("label", "")),
            p1=str(data["p1"]),
            p2=str(data["p2"]),
            hidden=bool(data.get("hidden", False)),
            style=Style.from_dict(data.get("style")),
        )


@dataclass
class Circle:
    id: str
    label: str
    center: str
    radius_point: str
    hidden: bool = False
    style: Style = field(default_factory=Style)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "label": self.label,
            "center": self.center,
            "radius_point": self.radius_point,
        }
        if self.hidden:
            data["hidden"] = True
        data["style"] = self.style.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Circle":
        return cls(
            id=str(data["id"]),
            label=str(data.get("label", "")),
            center=str(data["center"]),
            radius_point=str(data["radius_point"]),
            hidden=bool(data.get("hidden", False)),
            style=Style.from_dict(data.get("style")),
        )


def index_to_letters(index: int, *, uppercase: bool) -> str:
    """0 -> a, 25 -> z, 26 -> aa (spreadsheet-style column names)."""

    base = ord("A") if uppercase else ord("a")
    n = index + 1
    out = ""
    while n > 0:
        r = (n - 1) % 26
        out = chr(base + r) + out
        n = (n - 1) // 26
    return out


def letters_to_index(label: str) -> Optional[int]:
    if not _LETTERS_RE.match(label):
        return None
    n = 0
    for ch in label.upper():
        n = n * 26 + (ord(ch) - ord("A") + 1)
    return n - 1


@dataclass
class ConstructionDoc:
    """All objects of one geometry mode."""

    points: List[Point] = field(default_factory=list)
    lines: List[Line] = field(default_factory=list)
    circles: List[Circle] = field(default_factory=list)
    next_id: int = 1
    next_point_label: int = 0
    next_curve_label: int = 0
    star_point_id: Optional[str] = None

    def point(self, point_id: str) -> Optional[Point]:
        for p in self.points:
            if p.id == point_id:
                return p
        return None

    def line(self, line_id: str) -> Optional[Line]:
        for ln in self.lines:
            if ln.id == line_id:
                return ln
        return None

    def circle(self, circle_id: str) -> Optional[Circle]:
        for c in self.circles:
            if c.id == circle_id:
                return c
        return None

    def resolve(self, ref: ObjectRef):
        if ref.kind == "point":
            return self.point(ref.id)
        if ref.kind == "line":
            return self.line(ref.id)
        return self.circle(ref.id)

    @property
    def star_point(self) -> Optional[Point]:
        if self.star_point_id is None:
            return None
        return self.point(self.star_point_id)

    def make_id(self, prefix: str) -> str:
        new_id = f"{prefix}{self.next_id}"
        self.next_id += 1
        return new_id

    def take_point_label(self) -> str:
        label = index_to_letters(self.next_point_label, uppercase=False)
        self.next_point_label += 1
        return label

    def take_curve_label(self) -> str:
        label = index_to_letters(self.next_curve_label, uppercase=True)
        self.next_curve_label += 1
        return label

    def reserve_point_label(self, label: str) -> None:
        if label in ("*", STAR_LABEL):
            return
        idx = letters_to_index(label)
        if idx is not None:
            self.next_point_label = max(self.next_point_label, idx + 1)

    def reserve_curve_label(self, label: str) -> None:
        idx = letters_to_index(label)
        if idx is not None:
            self.next_curve_label = max(self.next_curve_label, idx + 1)

    def add_point(
        self,
        x: float,
        y: float,
        z: Optional[float] = None,
        *,
        constraints: Optional[List[CurveRef]] = None,
        locked: bool = False,
        hidden: bool = False,
        label: Optional[str] = None,
    ) -> Point:
        point = Point(
            id=self.make_id("p"),
            label=label if label is not None else self.take_point_label(),
            x=float(x),
            y=float(y),
            z=float(z) if z is not None else None,
            locked=locked,
            constraints=list(constraints or []),
            hidden=hidden,
        )
        self.points.append(point)
        return point

    def add_line(self, p1: str, p2: str, *, hidden: bool = False) -> Line:
        self._require_points(p1, p2)
        line = Line(id=self.make_id("l"), label=self.take_curve_label(), p1=p1, p2=p2, hidden=hidden)
        self.lines.append(line)
        return line

    def add_circle(self, center: str, radius_point: str, *, hidden: bool = False) -> Circle:
        self._require_points(center, radius_point)
        circle = Circle(
            id=self.make_id("c"),
            label=self.take_curve_label(),
            center=center,
            radius_point=radius_point,
            hidden=hidden,
        )
        self.circles.append(circle)
        return circle

    def _require_points(self, *point_ids: str) -> None:
        for point_id in point_ids:
            if self.point(point_id) is None:
                raise KeyError(f"Unknown point {point_id!r}")

    def check(self) -> None:
        """Raise ``ValueError`` when an id is repeated or a reference does not resolve."""

        seen = set()
        for obj in (*self.points, *self.lines, *self.circles):
            if obj.id in seen:
                raise ValueError(f"Duplicate object id {obj.id!r}")
            seen.add(obj.id)
        for line in self.lines:
            for point_id in (line.p1, line.p2):
                if self.point(point_id) is None:
                    raise ValueError(f"Line {line.id!r} references unknown point {point_id!r}")
        for circle in self.circles:
            for point_id in (circle.center, circle.radius_point):
                if self.point(point_id) is None:
                    raise ValueError(f"Circle {circle.id!r} references unknown point {point_id!r}")
        for point in self.points:
            for ref in point.constraints:
                if self.resolve(ref) is None:
                    raise ValueError(f"Point {point.id!r} is constrained to unknown {ref.key}")
        if self.star_point_id is not None:
            star = self.star_point
            if star is None or not star.locked:
                raise ValueError(f"Star point {self.star_point_id!r} must be an existing locked point")

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "points": [p.to_dict() for p in self.points],
            "lines": [ln.to_dict() for ln in self.lines],
            "circles": [c.to_dict() for c in self.circles],
            "next_id": self.next_id,
            "next_point_label": self.next_point_label,
            "next_curve_label": self.next_curve_label,
        }
        if self.star_point_id is not None:
            data["star_point_id"] = self.star_point_id
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConstructionDoc":
        doc = cls(
            points=[Point.from_dict(p) for p in data.get("points") or []],
            lines=[Line.from_dict(ln) for ln in data.get("lines") or []],
            circles=[Circle.from_dict(c) for c in data.get("circles") or []],
            next_id=int(data.get("next_id", 1)),
            next_point_label=int(data.get("next_point_label", 0)),
            next_curve_label=int(data.get("next_curve_label", 0)),
            star_point_id=data.get("star_point_id"),
        )
        doc.check()
        for p in doc.points:
            doc.reserve_point_label(p.label)
        for curve in (*doc.lines, *doc.circles):
            doc.reserve_curve_label(curve.label)
        return doc


def create_empty_doc(mode: GeometryMode) -> ConstructionDoc:
    """Return an empty document; inversive documents get their locked star point."""

    doc = ConstructionDoc()
    if mode is GeometryMode.INVERSIVE_EUCLIDEAN:
        star = Point(
            id=doc.make_id("p"),
            label=STAR_LABEL,
            x=0.0,
            y=0.0,
            locked=True,
            style=Style(color="#111111", opacity=1.0),
        )
        doc.points.append(star)
        doc.star_point_id = star.id
    return doc


def point_coords(point: Point, mode: GeometryMode) -> Tuple[float, ...]:
    """Coordinates of ``point`` in the storage chart of ``mode``."""

    if mode is GeometryMode.SPHERICAL:
        return (point.x, point.y, point.z if point.z is not None else 0.0)
    return (point.x, point.y)


__all__ = [
    "CURVE_KINDS",
    "OBJECT_KINDS",
    "STAR_LABEL",
    "ObjectRef",
    "CurveRef",
    "Style",
    "Point",
    "Line",
    "Circle",
    "ConstructionDoc",
    "create_empty_doc",
    "index_to_letters",
    "letters_to_index",
    "point_coords",
]
