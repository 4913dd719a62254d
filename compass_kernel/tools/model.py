"""Records of the custom-tool step arena and its disambiguation hints."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Type, Union

from ..types import Vec3

NodeId = str


@dataclass
class ToolConfig:
    """Tolerances used when recording and replaying custom tools."""

    default_name: str = "Custom Tool"
    on_curve_tolerance: float = 1e-4
    avoid_point_tolerance: float = 1e-6
    root_match_tolerance: float = 1e-6
    min_radius: float = 1e-9


class ToolBuildError(ValueError):
    """Error raised when a construction cannot be recorded as a custom tool."""

    def __init__(self, message: str, ref: Optional[Any] = None):
        super().__init__(message)
        self.ref = ref


class ToolReplayError(ValueError):
    """Error raised when a custom tool cannot be applied to the given inputs."""


@dataclass(frozen=True)
class CurveHint:
    """Position on one curve.

    ``line``: parameter in the line frame.  ``arc``: fraction of the arc between
    the defining points of a line drawn as a circle.  ``turn``: angle about the
    drawn centre measured from the radius point.  ``angle``: absolute polar
    angle about the drawn centre.
    """

    mode: str  # "line" | "arc" | "turn" | "angle"
    value: float
    node_id: Optional[NodeId] = None


@dataclass(frozen=True)
class LineOffsetHint:
    """Offset along a line from ``origin``'s foot, recorded on a line of length ``span``."""

    origin: NodeId
    offset: float
    span: float


@dataclass(frozen=True)
class LineRefHint:
    """Line parameter of an intersection measured from ``ref_point``'s foot."""

    line: NodeId
    ref_point: NodeId
    value: float


@dataclass(frozen=True)
class LineSideHint:
    line: NodeId
    sign: int


@dataclass(frozen=True)
class CircleSideHint:
    """Side of the centre-to-centre line of a circle-circle intersection."""

    sign: int


@dataclass(frozen=True)
class OrientationHint:
    """Turn sign of the intersection about a shared ancestor circle's centre."""

    origin: NodeId
    direction: NodeId
    sign: int


@dataclass(frozen=True)
class PairHint:
    """Signed angle, about ``origin``, from an earlier intersection on the same circle."""

    origin: NodeId
    other_point: NodeId
    angle: float


@dataclass(frozen=True)
class AvoidPointHint:
    point: NodeId


def _hint_from_dict(cls, data: Optional[Dict[str, Any]]):
    if data is None:
        return None
    return cls(**data)


def _vec3_from(data: Optional[List[float]]) -> Optional[Vec3]:
    if data is None:
        return None
    return (float(data[0]), float(data[1]), float(data[2]))


@dataclass
class InputStep:
    id: NodeId
    kind: str
    input_index: int

    op: ClassVar[str] = "input"

    def deps(self) -> Tuple[NodeId, ...]:
        return ()


@dataclass
class PointFixedStep:
    id: NodeId
    x: float
    y: float
    z: Optional[float] = None
    star: bool = False

    op: ClassVar[str] = "point_fixed"
    kind: ClassVar[str] = "point"

    def deps(self) -> Tuple[NodeId, ...]:
        return ()


@dataclass
class PointOnStep:
    id: NodeId
    curve: NodeId
    curve_hint: Optional[CurveHint] = None
    line_offset: Optional[LineOffsetHint] = None
    sphere_hint: Optional[Vec3] = None

    op: ClassVar[str] = "point_on"
    kind: ClassVar[str] = "point"

    def deps(self) -> Tuple[NodeId, ...]:
        out = [self.curve]
        if self.line_offset is not None:
            out.append(self.line_offset.origin)
        return tuple(out)


@dataclass
class IntersectionStep:
    id: NodeId
    a: NodeId
    b: NodeId
    curve_hints: List[CurveHint] = field(default_factory=list)
    sphere_hint: Optional[Vec3] = None
    line_ref: Optional[LineRefHint] = None
    line_side: Optional[LineSideHint] = None
    circle_side: Optional[CircleSideHint] = None
    orient_ref: Optional[OrientationHint] = None
    pair_ref: Optional[PairHint] = None
    avoid_point: Optional[AvoidPointHint] = None

    op: ClassVar[str] = "intersection"
    kind: ClassVar[str] = "point"

    def deps(self) -> Tuple[NodeId, ...]:
        out = [self.a, self.b]
        out.extend(h.node_id for h in self.curve_hints if h.node_id is not None)
        if self.line_ref is not None:
            out.extend([self.line_ref.line, self.line_ref.ref_point])
        if self.line_side is not None:
            out.append(self.line_side.line)
        if self.orient_ref is not None:
            out.extend([self.orient_ref.origin, self.orient_ref.direction])
        if self.pair_ref is not None:
            out.extend([self.pair_ref.origin, self.pair_ref.other_point])
        if self.avoid_point is not None:
            out.append(self.avoid_point.point)
        return tuple(out)


@dataclass
class LineStep:
    id: NodeId
    p1: NodeId
    p2: NodeId

    op: ClassVar[str] = "line"
    kind: ClassVar[str] = "line"

    def deps(self) -> Tuple[NodeId, ...]:
        return (self.p1, self.p2)


@dataclass
class CircleStep:
    id: NodeId
    center: NodeId
    radius: NodeId

    op: ClassVar[str] = "circle"
    kind: ClassVar[str] = "circle"

    def deps(self) -> Tuple[NodeId, ...]:
        return (self.center, self.radius)


@dataclass
class CircleFixedStep:
    """Circle of a recorded chart radius; the radius point sits at ``angle``."""

    id: NodeId
    center: NodeId
    radius: float
    angle: float

    op: ClassVar[str] = "circle_fixed"
    kind: ClassVar[str] = "circle"

    def deps(self) -> Tuple[NodeId, ...]:
        return (self.center,)


ToolStep = Union[
    InputStep,
    PointFixedStep,
    PointOnStep,
    IntersectionStep,
    LineStep,
    CircleStep,
    CircleFixedStep,
]

_STEP_TYPES: Dict[str, Type] = {
    cls.op: cls
    for cls in (InputStep, PointFixedStep, PointOnStep, IntersectionStep, LineStep, CircleStep, CircleFixedStep)
}

_HINT_FIELDS: Dict[str, Type] = {
    "curve_hint": CurveHint,
    "line_offset": LineOffsetHint,
    "line_ref": LineRefHint,
    "line_side": LineSideHint,
    "circle_side": CircleSideHint,
    "orient_ref": OrientationHint,
    "pair_ref": PairHint,
    "avoid_point": AvoidPointHint,
}


def step_to_dict(step: ToolStep) -> Dict[str, Any]:
    data: Dict[str, Any] = {"op": step.op, "kind": step.kind}
    for f in fields(step):
        value = getattr(step, f.name)
        if value is None or value == [] or (f.name == "star" and value is False):
            continue
        if f.name == "curve_hints":
            data[f.name] = [asdict(h) for h in value]
        elif f.name in _HINT_FIELDS:
            data[f.name] = asdict(value)
        elif f.name == "sphere_hint":
            data[f.name] = list(value)
        else:
            data[f.name] = value
    return data


def step_from_dict(data: Dict[str, Any]) -> ToolStep:
    op = data.get("op")
    cls = _STEP_TYPES.get(op)
    if cls is None:
        raise ValueError(f"Unknown tool step op {op!r}")
    kwargs: Dict[str, Any] = {}
    for f in fields(cls):
        if f.name not in data:
            continue
        value = data[f.name]
        if f.name == "curve_hints":
            kwargs[f.name] = [CurveHint(**h) for h in value]
        elif f.name in _HINT_FIELDS:
            kwargs[f.name] = _hint_from_dict(_HINT_FIELDS[f.name], value)
        elif f.name == "sphere_hint":
            kwargs[f.name] = _vec3_from(value)
        else:
            kwargs[f.name] = value
    return cls(**kwargs)


@dataclass(frozen=True)
class ToolOutput:
    kind: str
    node_id: NodeId


@dataclass
class CustomTool:
    """A recorded construction generalised over ``inputs``.

    ``steps`` form a DAG in append order: each step only references ids of
    earlier steps.
    """

    id: str
    name: str
    inputs: List[str]
    steps: List[ToolStep]
    output: ToolOutput

    def step(self, node_id: NodeId) -> Optional[ToolStep]:
        for s in self.steps:
            if s.id == node_id:
                return s
        return None

    def check(self) -> None:
        """Raise ``ValueError`` unless every reference points to an earlier step."""

        seen: Dict[NodeId, str] = {}
        for s in self.steps:
            if s.id in seen:
                raise ValueError(f"Duplicate tool node {s.id!r}")
            for dep in s.deps():
                if dep not in seen:
                    raise ValueError(f"Tool node {s.id!r} references unknown or later node {dep!r}")
            if isinstance(s, InputStep) and not 0 <= s.input_index < len(self.inputs):
                raise ValueError(f"Tool input index {s.input_index} out of range")
            seen[s.id] = s.kind
        if seen.get(self.output.node_id) != self.output.kind:
            raise ValueError(f"Tool output {self.output.node_id!r} is not a {self.output.kind}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "inputs": [{"kind": kind} for kind in self.inputs],
            "steps": [step_to_dict(s) for s in self.steps],
            "output": {"kind": self.output.kind, "node_id": self.output.node_id},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CustomTool":
        tool = cls(
            id=str(data.get("id", "")),
            name=str(data.get("name", "")),
            inputs=[str(ref["kind"]) for ref in data.get("inputs") or []],
            steps=[step_from_dict(s) for s in data.get("steps") or []],
            output=ToolOutput(str(data["output"]["kind"]), str(data["output"]["node_id"])),
        )
        tool.check()
        return tool


__all__ = [
    "NodeId",
    "ToolConfig",
    "ToolBuildError",
    "ToolReplayError",
    "CurveHint",
    "LineOffsetHint",
    "LineRefHint",
    "LineSideHint",
    "CircleSideHint",
    "OrientationHint",
    "PairHint",
    "AvoidPointHint",
    "InputStep",
    "PointFixedStep",
    "PointOnStep",
    "IntersectionStep",
    "LineStep",
    "CircleStep",
    "CircleFixedStep",
    "ToolStep",
    "ToolOutput",
    "CustomTool",
    "step_to_dict",
    "step_from_dict",
]
