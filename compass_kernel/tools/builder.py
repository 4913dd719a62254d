"""Record a construction as a reusable custom tool.

The builder walks the dependency graph of the chosen output in post-order,
memoised by ``kind:id`` so shared sub-objects are visited once.  Every visited
object becomes one flat step; multi-valued steps (a point on a curve, an
intersection) carry the hints replay needs to pick the intended root again.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set, Tuple, Union

from ..charts import spherical_distance
from ..curves import signed_distance_to_curve
from ..derive import derive_curve
from ..logging_utils import debug_log_call
from ..model import CURVE_KINDS, Circle, ConstructionDoc, CurveRef, ObjectRef, Point
from ..sphere import normalize3
from ..types import CircleCurve, Curve2D, GeometryMode, LineCurve, Vec2, Vec3
from .config import get_tool_config
from .math_utils import arc_fraction, line_frame_param, line_span, polar_angle, side_sign, signed_angle
from .model import (
    AvoidPointHint,
    CircleFixedStep,
    CircleSideHint,
    CircleStep,
    CurveHint,
    CustomTool,
    InputStep,
    IntersectionStep,
    LineOffsetHint,
    LineRefHint,
    LineSideHint,
    LineStep,
    NodeId,
    OrientationHint,
    PairHint,
    PointFixedStep,
    PointOnStep,
    ToolBuildError,
    ToolConfig,
    ToolOutput,
    ToolStep,
)

logger = logging.getLogger(__name__)

RefLike = Union[ObjectRef, Mapping[str, Any]]


def _as_ref(value: RefLike) -> ObjectRef:
    if isinstance(value, ObjectRef):
        return value
    try:
        return ObjectRef(str(value["kind"]), str(value["id"]))
    except (KeyError, TypeError, ValueError) as exc:
        raise ToolBuildError("Unsupported geometry.", ref=value) from exc


def _curve_ref(ref: ObjectRef) -> CurveRef:
    return ref if isinstance(ref, CurveRef) else CurveRef(ref.kind, ref.id)


def _pick(a: CurveRef, b: CurveRef, kind: str) -> Optional[CurveRef]:
    if a.kind == kind:
        return a
    if b.kind == kind:
        return b
    return None


class _ToolGraphBuilder:
    def __init__(
        self,
        mode: GeometryMode,
        doc: ConstructionDoc,
        inputs: Sequence[ObjectRef],
        config: ToolConfig,
    ) -> None:
        self.mode = mode
        self.doc = doc
        self.inputs = list(inputs)
        self.config = config
        self.input_index: Dict[str, int] = {}
        for idx, ref in enumerate(self.inputs):
            self.input_index.setdefault(ref.key, idx)
        self.input_point_ids = {ref.id for ref in self.inputs if ref.kind == "point"}
        self.steps: List[ToolStep] = []
        self.nodes: Dict[str, NodeId] = {}
        self.in_progress: Set[str] = set()
        self.counter = 0
        # circle id -> (point id, node id) of the last circle x line intersection on it
        self.circle_line_hits: Dict[str, Tuple[str, NodeId]] = {}

    @property
    def planar(self) -> bool:
        return self.mode is not GeometryMode.SPHERICAL

    def new_id(self) -> NodeId:
        node_id = f"n{self.counter}"
        self.counter += 1
        return node_id

    def build(self, ref: ObjectRef) -> NodeId:
        key = ref.key
        if key in self.nodes:
            return self.nodes[key]
        if key in self.in_progress:
            raise ToolBuildError("Unsupported geometry.", ref=ref)

        idx = self.input_index.get(key)
        if idx is not None:
            node_id = f"in{idx}"
            self.steps.append(InputStep(node_id, ref.kind, idx))
            self.nodes[key] = node_id
            return node_id

        self.in_progress.add(key)
        try:
            if ref.kind == "point":
                step = self._point_step(ref)
            elif ref.kind == "line":
                step = self._line_step(ref)
            elif ref.kind == "circle":
                step = self._circle_step(ref)
            else:
                raise ToolBuildError("Unsupported geometry.", ref=ref)
        finally:
            self.in_progress.discard(key)

        self.steps.append(step)
        self.nodes[key] = step.id
        logger.debug("Recorded %s step %s for %s", step.op, step.id, key)
        return step.id

    def hint_node(self, ref: ObjectRef) -> Optional[NodeId]:
        """Build a node only referenced by a hint; ``None`` if it would close a cycle."""

        if ref.key in self.in_progress:
            return None
        return self.build(ref)

    # -- geometry lookups -------------------------------------------------

    def curve_of(self, ref: CurveRef) -> Optional[Curve2D]:
        if not self.planar:
            return None
        curve = derive_curve(self.mode, self.doc, ref)
        if isinstance(curve, (LineCurve, CircleCurve)):
            return curve
        return None

    def straight_line(self, ref: CurveRef) -> Optional[Tuple[Vec2, Vec2]]:
        """Endpoints of ``ref`` when it is a line drawn as a straight line."""

        if ref.kind != "line":
            return None
        line = self.doc.line(ref.id)
        if line is None or not isinstance(self.curve_of(ref), LineCurve):
            return None
        p1 = self.doc.point(line.p1)
        p2 = self.doc.point(line.p2)
        if p1 is None or p2 is None:
            return None
        return p1.xy, p2.xy

    def circle_center(self, ref: CurveRef) -> Optional[Point]:
        if ref.kind != "circle":
            return None
        circle = self.doc.circle(ref.id)
        if circle is None:
            return None
        return self.doc.point(circle.center)

    def defining_points(self, ref: CurveRef) -> Optional[Tuple[Vec2, Vec2]]:
        """``(p1, p2)`` of a line or ``(center, radius point)`` of a circle."""

        if ref.kind == "line":
            obj = self.doc.line(ref.id)
            ids = (obj.p1, obj.p2) if obj is not None else None
        else:
            obj = self.doc.circle(ref.id)
            ids = (obj.center, obj.radius_point) if obj is not None else None
        if ids is None:
            return None
        first = self.doc.point(ids[0])
        second = self.doc.point(ids[1])
        if first is None or second is None:
            return None
        return first.xy, second.xy

    def curve_hint(self, ref: CurveRef, point: Point, node_id: Optional[NodeId] = None) -> Optional[CurveHint]:
        curve = self.curve_of(ref)
        if curve is None:
            return None
        if isinstance(curve, LineCurve):
            ends = self.straight_line(ref)
            if ends is None:
                return None
            t = line_frame_param(ends[0], ends[1], point.xy)
            if t is None:
                return None
            return CurveHint("line", t, node_id)

        # Drawn as a circle: record the position relative to the defining points.
        ends = self.defining_points(ref)
        if ends is not None and ref.kind == "line":
            t = arc_fraction(curve.center, ends[0], ends[1], point.xy)
            if t is not None:
                return CurveHint("arc", t, node_id)
        if ends is not None and ref.kind == "circle":
            turn = signed_angle(curve.center, ends[1], point.xy)
            if turn is not None:
                return CurveHint("turn", turn, node_id)
        angle = polar_angle(curve.center, point.xy)
        if angle is None:
            return None
        return CurveHint("angle", angle, node_id)

    def sphere_hint(self, point: Point) -> Optional[Vec3]:
        if self.planar or point.xyz is None:
            return None
        return normalize3(point.xyz)

    # -- points -----------------------------------------------------------

    def _point_step(self, ref: ObjectRef) -> ToolStep:
        point = self.doc.point(ref.id)
        if point is None:
            raise ToolBuildError("Point not found.", ref=ref)
        if point.locked or not point.constraints:
            if not point.locked:
                on_input = self._point_on_input_curve(point)
                if on_input is not None:
                    return on_input
            return self._fixed_point(point)
        if len(point.constraints) >= 2:
            return self._intersection(point)
        return self._point_on(point)

    def _fixed_point(self, point: Point) -> PointFixedStep:
        star = self.doc.star_point_id is not None and point.id == self.doc.star_point_id
        if self.mode is GeometryMode.SPHERICAL:
            if point.xyz is None:
                raise ToolBuildError("Invalid spherical point.", ref=ObjectRef("point", point.id))
            u = normalize3(point.xyz)
            return PointFixedStep(self.new_id(), u[0], u[1], u[2], star=star)
        return PointFixedStep(self.new_id(), point.x, point.y, star=star)

    def _point_on_input_curve(self, point: Point) -> Optional[PointOnStep]:
        """A free point lying on an input curve is recorded as a point on it."""

        if not self.planar:
            return None
        best: Optional[CurveRef] = None
        best_dist = math.inf
        for ref in self.inputs:
            if ref.kind not in CURVE_KINDS:
                continue
            curve_ref = _curve_ref(ref)
            curve = self.curve_of(curve_ref)
            if curve is None:
                continue
            dist = abs(signed_distance_to_curve(curve, point.xy))
            if dist < best_dist:
                best_dist = dist
                best = curve_ref
        if best is None or best_dist > self.config.on_curve_tolerance:
            return None
        hint = self.curve_hint(best, point)
        if hint is None:
            return None
        curve_node = self.build(best)
        line_offset = self._line_offset(point, best) if best.kind == "line" else None
        return PointOnStep(self.new_id(), curve=curve_node, curve_hint=hint, line_offset=line_offset)

    def _line_offset(self, point: Point, line_ref: CurveRef) -> Optional[LineOffsetHint]:
        """Offset of a circle's radius point from the circle's centre along a line."""

        if not self.planar:
            return None
        circles = [c for c in self.doc.circles if c.radius_point == point.id]
        if not circles:
            return None
        circle = next((c for c in circles if c.center in self.input_point_ids), circles[0])
        center = self.doc.point(circle.center)
        ends = self.straight_line(line_ref)
        if center is None or ends is None:
            return None
        t_point = line_frame_param(ends[0], ends[1], point.xy)
        t_center = line_frame_param(ends[0], ends[1], center.xy)
        if t_point is None or t_center is None:
            return None
        origin = self.hint_node(ObjectRef("point", circle.center))
        if origin is None:
            return None
        return LineOffsetHint(origin, t_point - t_center, line_span(ends[0], ends[1]))

    def _point_on(self, point: Point) -> PointOnStep:
        constraint = point.constraints[0]
        curve_node = self.build(constraint)
        curve_hint = self.curve_hint(constraint, point)
        line_offset = self._line_offset(point, constraint) if constraint.kind == "line" else None
        return PointOnStep(
            self.new_id(),
            curve=curve_node,
            curve_hint=curve_hint,
            line_offset=line_offset,
            sphere_hint=self.sphere_hint(point),
        )

    def _intersection(self, point: Point) -> IntersectionStep:
        a, b = point.constraints[0], point.constraints[1]
        a_node = self.build(a)
        b_node = self.build(b)

        curve_hints = [
            hint
            for hint in (self.curve_hint(a, point, a_node), self.curve_hint(b, point, b_node))
            if hint is not None
        ]
        circle_ref = _pick(a, b, "circle") if self.planar else None
        line_ref = _pick(a, b, "line") if self.planar else None
        line_node = None
        if line_ref is not None:
            line_node = a_node if line_ref is a else b_node

        step = IntersectionStep(
            "",
            a=a_node,
            b=b_node,
            curve_hints=curve_hints,
            sphere_hint=self.sphere_hint(point),
        )
        if circle_ref is not None and line_ref is not None:
            step.line_ref = self._line_ref_hint(point, line_ref, circle_ref, line_node)
            step.line_side = self._line_side_hint(point, line_ref, circle_ref)
            step.avoid_point = self._avoid_point_hint(point, line_ref, circle_ref)
            step.pair_ref = self._pair_hint(point, circle_ref)
        if self.planar and a.kind == "circle" and b.kind == "circle":
            step.circle_side = self._circle_side_hint(point, a, b)
            step.orient_ref = self._orientation_hint(point, a, b, a_node)

        step.id = self.new_id()
        if circle_ref is not None and line_ref is not None:
            self.circle_line_hits[circle_ref.id] = (point.id, step.id)
        return step

    def _line_ref_hint(
        self, point: Point, line_ref: CurveRef, circle_ref: CurveRef, line_node: NodeId
    ) -> Optional[LineRefHint]:
        """Line parameter of the intersection measured from the circle centre's foot."""

        ends = self.straight_line(line_ref)
        circle = self.doc.circle(circle_ref.id)
        if ends is None or circle is None:
            return None
        center = self.doc.point(circle.center)
        if center is None:
            return None
        t_point = line_frame_param(ends[0], ends[1], point.xy)
        t_ref = line_frame_param(ends[0], ends[1], center.xy)
        if t_point is None or t_ref is None:
            return None
        ref_node = self.hint_node(ObjectRef("point", circle.center))
        if ref_node is None:
            return None
        return LineRefHint(line_node, ref_node, t_point - t_ref)

    def _line_side_hint(self, point: Point, line_ref: CurveRef, circle_ref: CurveRef) -> Optional[LineSideHint]:
        """Side of another line through the circle centre."""

        center = self.circle_center(circle_ref)
        if center is None:
            return None
        line_ids = [c.id for c in center.constraints if c.kind == "line"]
        if len(line_ids) < 2:
            return None
        other_id = next((lid for lid in line_ids if lid != line_ref.id), None)
        if other_id is None:
            return None
        other = CurveRef("line", other_id)
        ends = self.straight_line(other)
        if ends is None:
            return None
        sign = side_sign(ends[0], ends[1], point.xy)
        if sign == 0:
            return None
        node = self.hint_node(other)
        if node is None:
            return None
        return LineSideHint(node, sign)

    def _circle_side_hint(self, point: Point, a: CurveRef, b: CurveRef) -> Optional[CircleSideHint]:
        center_a = self.circle_center(a)
        center_b = self.circle_center(b)
        if center_a is None or center_b is None:
            return None
        sign = side_sign(center_a.xy, center_b.xy, point.xy)
        if sign == 0:
            return None
        return CircleSideHint(sign)

    def _orientation_hint(self, point: Point, a: CurveRef, b: CurveRef, a_node: NodeId) -> Optional[OrientationHint]:
        """Turn sign about the centre of a circle both centres lie on."""

        center_a = self.circle_center(a)
        center_b = self.circle_center(b)
        if center_a is None or center_b is None:
            return None
        a_circles = {c.id for c in center_a.constraints if c.kind == "circle"}
        common_id = next((c.id for c in center_b.constraints if c.kind == "circle" and c.id in a_circles), None)
        if common_id is None:
            return None
        common: Optional[Circle] = self.doc.circle(common_id)
        if common is None:
            return None
        origin = self.doc.point(common.center)
        if origin is None:
            return None
        sign = side_sign(origin.xy, center_a.xy, point.xy)
        if sign == 0:
            return None
        origin_node = self.hint_node(ObjectRef("point", common.center))
        if origin_node is None:
            return None
        return OrientationHint(origin_node, a_node, sign)

    def _avoid_point_hint(self, point: Point, line_ref: CurveRef, circle_ref: CurveRef) -> Optional[AvoidPointHint]:
        """The circle's radius point already sits on the line: prefer the other root."""

        circle = self.doc.circle(circle_ref.id)
        if circle is None:
            return None
        radius_point = self.doc.point(circle.radius_point)
        if radius_point is None or radius_point.id == point.id:
            return None
        if self._is_fixed_radius_point(radius_point):
            return None
        curve = self.curve_of(line_ref)
        if curve is None:
            return None
        if abs(signed_distance_to_curve(curve, radius_point.xy)) > self.config.avoid_point_tolerance:
            return None
        node = self.hint_node(ObjectRef("point", radius_point.id))
        if node is None:
            return None
        return AvoidPointHint(node)

    def _pair_hint(self, point: Point, circle_ref: CurveRef) -> Optional[PairHint]:
        """Angle from an earlier intersection of the same circle with a line."""

        existing = self.circle_line_hits.get(circle_ref.id)
        center = self.circle_center(circle_ref)
        if existing is None or center is None:
            return None
        other = self.doc.point(existing[0])
        if other is None:
            return None
        angle = signed_angle(center.xy, other.xy, point.xy)
        if angle is None:
            return None
        origin = self.hint_node(ObjectRef("point", center.id))
        if origin is None:
            return None
        return PairHint(origin, existing[1], angle)

    # -- curves -----------------------------------------------------------

    def _line_step(self, ref: ObjectRef) -> LineStep:
        line = self.doc.line(ref.id)
        if line is None:
            raise ToolBuildError("Line not found.", ref=ref)
        p1 = self.build(ObjectRef("point", line.p1))
        p2 = self.build(ObjectRef("point", line.p2))
        return LineStep(self.new_id(), p1, p2)

    def _is_fixed_radius_point(self, point: Point) -> bool:
        """Free, non-input radius points are folded into a ``circle_fixed`` step."""

        return self.planar and point.is_free and ObjectRef("point", point.id).key not in self.input_index

    def _radius(self, center: Point, radius_point: Point) -> float:
        if self.mode is GeometryMode.SPHERICAL and center.xyz is not None and radius_point.xyz is not None:
            return spherical_distance(normalize3(center.xyz), normalize3(radius_point.xyz))
        return math.hypot(radius_point.x - center.x, radius_point.y - center.y)

    def _circle_step(self, ref: ObjectRef) -> ToolStep:
        circle = self.doc.circle(ref.id)
        if circle is None:
            raise ToolBuildError("Circle not found.", ref=ref)
        center = self.doc.point(circle.center)
        radius_point = self.doc.point(circle.radius_point)
        if center is None or radius_point is None:
            raise ToolBuildError("Point not found.", ref=ref)
        r = self._radius(center, radius_point)
        if not math.isfinite(r) or r <= self.config.min_radius:
            raise ToolBuildError("Circle radius must be nonzero.", ref=ref)

        center_node = self.build(ObjectRef("point", circle.center))
        if self._is_fixed_radius_point(radius_point):
            angle = math.atan2(radius_point.y - center.y, radius_point.x - center.x)
            return CircleFixedStep(self.new_id(), center_node, r, angle)

        radius_node = self.build(ObjectRef("point", circle.radius_point))
        return CircleStep(self.new_id(), center_node, radius_node)


@debug_log_call(logger)
def build_custom_tool(
    mode: Union[GeometryMode, str],
    doc: ConstructionDoc,
    name: Optional[str],
    inputs: Sequence[RefLike],
    output: RefLike,
    *,
    config: Optional[ToolConfig] = None,
) -> CustomTool:
    """Record ``output`` as a custom tool over the ordered ``inputs``.

    Raises :class:`ToolBuildError` when the output is one of the inputs or a
    free point, when a referenced object is missing, or when part of the
    construction cannot be expressed as a step.  The returned tool has an empty
    ``id``; :func:`compass_kernel.workspace.register_custom_tool` assigns one.
    """

    cfg = config or get_tool_config()
    mode = GeometryMode(mode)
    refs = [_as_ref(ref) for ref in inputs]
    out = _as_ref(output)

    if any(ref.key == out.key for ref in refs):
        raise ToolBuildError("Output must be derived from inputs.", ref=out)
    if out.kind == "point":
        out_point = doc.point(out.id)
        if out_point is not None and not out_point.constraints:
            raise ToolBuildError("Output must be derived from inputs.", ref=out)

    builder = _ToolGraphBuilder(mode, doc, refs, cfg)
    output_node = builder.build(out)
    tool = CustomTool(
        id="",
        name=(name or "").strip() or cfg.default_name,
        inputs=[ref.kind for ref in refs],
        steps=builder.steps,
        output=ToolOutput(out.kind, output_node),
    )
    logger.info(
        "Built custom tool %r in %s mode: %d inputs, %d steps",
        tool.name,
        mode.value,
        len(refs),
        len(tool.steps),
    )
    return tool


__all__ = ["build_custom_tool"]
