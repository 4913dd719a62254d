"""Replay a custom tool on new inputs.

Steps are evaluated in append order.  Input nodes bind the caller's objects,
curves are rebuilt with the per-mode deriver and every multi-valued step picks
the root its hints select: sign hints filter the candidates first (a filter
that would reject every root is logged and ignored), then the nearest recorded
parameter, angle or sphere position decides.  Positions on curves drawn as
circles are replayed relative to the defining points and kept in the domain.
Degenerate geometry never raises; the step value is simply ``None`` and so is
everything structurally depending on it.
"""

from __future__ import annotations

import copy
import logging
import math
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from ..curves import intersect_curves, project_to_curve
from ..derive import (
    circle_curve_from_coords,
    constrain_2d_point,
    derive_curve,
    great_circle_from_coords,
    is_2d_point_in_domain,
    line_curve_from_coords,
    sphere_circle_from_coords,
)
from ..logging_utils import debug_log_call
from ..model import ConstructionDoc, CurveRef, ObjectRef, point_coords
from ..sphere import intersect_sphere_planes, nearest_point_on_sphere_plane, normalize3
from ..types import CircleCurve, Curve2D, GeometryMode, LineCurve, SpherePlane, Vec2
from .builder import RefLike
from .config import get_tool_config
from .math_utils import (
    angle_gap,
    arc_angle,
    dist2,
    line_frame_param,
    line_frame_point,
    line_span,
    polar_angle,
    side_sign,
    signed_angle,
)
from .model import (
    CircleFixedStep,
    CircleStep,
    CurveHint,
    CustomTool,
    InputStep,
    IntersectionStep,
    LineStep,
    NodeId,
    PointFixedStep,
    PointOnStep,
    ToolConfig,
    ToolReplayError,
    ToolStep,
)

logger = logging.getLogger(__name__)

AnyCurve = Union[Curve2D, SpherePlane]


@dataclass(frozen=True)
class PointValue:
    """A replayed point; ``coords`` has three components on the sphere."""

    coords: Tuple[float, ...]
    is_star: bool = False
    source_id: Optional[str] = None

    @property
    def xy(self) -> Vec2:
        return (self.coords[0], self.coords[1])


@dataclass(frozen=True)
class LineValue:
    p1: PointValue
    p2: PointValue
    curve: AnyCurve
    source_id: Optional[str] = None


@dataclass(frozen=True)
class CircleValue:
    center: PointValue
    radius_point: PointValue
    curve: AnyCurve
    source_id: Optional[str] = None


ToolValue = Union[PointValue, LineValue, CircleValue]


@dataclass
class ToolEvaluation:
    """Values of every step of one replay, keyed by node id."""

    values: Dict[NodeId, Optional[ToolValue]] = field(default_factory=dict)
    output_node: NodeId = ""

    @property
    def output(self) -> Optional[ToolValue]:
        return self.values.get(self.output_node)


def _as_ref(value: RefLike) -> ObjectRef:
    if isinstance(value, ObjectRef):
        return value
    try:
        return ObjectRef(str(value["kind"]), str(value["id"]))
    except (KeyError, TypeError, ValueError) as exc:
        raise ToolReplayError(f"Invalid tool input {value!r}.") from exc


def _check_inputs(tool: CustomTool, inputs: Sequence[RefLike]) -> List[ObjectRef]:
    refs = [_as_ref(ref) for ref in inputs]
    if len(refs) != len(tool.inputs):
        raise ToolReplayError(f"Custom tool {tool.name!r} expects {len(tool.inputs)} inputs, got {len(refs)}.")
    for idx, (ref, kind) in enumerate(zip(refs, tool.inputs)):
        if ref.kind != kind:
            raise ToolReplayError(f"Input {idx + 1} of {tool.name!r} must be a {kind}, got a {ref.kind}.")
    return refs


class _ToolReplay:
    def __init__(self, mode: GeometryMode, doc: ConstructionDoc, config: ToolConfig) -> None:
        self.mode = mode
        self.doc = doc
        self.config = config
        self.values: Dict[NodeId, Optional[ToolValue]] = {}
        self.star: Optional[PointValue] = None
        if mode is GeometryMode.INVERSIVE_EUCLIDEAN:
            star = doc.star_point
            if star is not None:
                self.star = PointValue(star.xy, True, star.id)

    @property
    def planar(self) -> bool:
        return self.mode is not GeometryMode.SPHERICAL

    # -- lookups ----------------------------------------------------------

    def point(self, node_id: Optional[NodeId]) -> Optional[PointValue]:
        value = self.values.get(node_id) if node_id is not None else None
        return value if isinstance(value, PointValue) else None

    def line(self, node_id: Optional[NodeId]) -> Optional[LineValue]:
        value = self.values.get(node_id) if node_id is not None else None
        return value if isinstance(value, LineValue) else None

    def circle(self, node_id: Optional[NodeId]) -> Optional[CircleValue]:
        value = self.values.get(node_id) if node_id is not None else None
        return value if isinstance(value, CircleValue) else None

    def curve(self, node_id: Optional[NodeId]) -> Optional[AnyCurve]:
        value = self.values.get(node_id) if node_id is not None else None
        if isinstance(value, (LineValue, CircleValue)):
            return value.curve
        return None

    # -- curve construction -----------------------------------------------

    def line_curve(self, p1: PointValue, p2: PointValue) -> Optional[AnyCurve]:
        if not self.planar:
            return great_circle_from_coords(p1.coords, p2.coords)
        return line_curve_from_coords(
            self.mode,
            p1.xy,
            p2.xy,
            star=self.star.xy if self.star is not None else None,
            a_is_star=p1.is_star,
            b_is_star=p2.is_star,
        )

    def circle_curve(self, center: PointValue, radius_point: PointValue) -> Optional[AnyCurve]:
        if not self.planar:
            return sphere_circle_from_coords(center.coords, radius_point.coords)
        return circle_curve_from_coords(
            self.mode,
            center.xy,
            radius_point.xy,
            star=self.star.xy if self.star is not None else None,
        )

    # -- inputs -----------------------------------------------------------

    def bind_input(self, ref: ObjectRef, position: int) -> Optional[ToolValue]:
        obj = self.doc.resolve(ref)
        if obj is None:
            raise ToolReplayError(f"Input {position + 1} ({ref.key}) not found.")
        if ref.kind == "point":
            return self._point_value(ref.id)
        if ref.kind == "line":
            p1 = self._point_value(obj.p1)
            p2 = self._point_value(obj.p2)
            curve = derive_curve(self.mode, self.doc, CurveRef("line", ref.id))
            if p1 is None or p2 is None or curve is None:
                return None
            return LineValue(p1, p2, curve, ref.id)
        center = self._point_value(obj.center)
        radius_point = self._point_value(obj.radius_point)
        curve = derive_curve(self.mode, self.doc, CurveRef("circle", ref.id))
        if center is None or radius_point is None or curve is None:
            return None
        return CircleValue(center, radius_point, curve, ref.id)

    def _point_value(self, point_id: str) -> Optional[PointValue]:
        point = self.doc.point(point_id)
        if point is None:
            return None
        is_star = self.star is not None and point.id == self.star.source_id
        return PointValue(point_coords(point, self.mode), is_star, point.id)

    # -- steps ------------------------------------------------------------

    def evaluate(self, step: ToolStep) -> Optional[ToolValue]:
        if isinstance(step, PointFixedStep):
            return self._fixed_point(step)
        if isinstance(step, PointOnStep):
            return self._point_on(step)
        if isinstance(step, IntersectionStep):
            return self._intersection(step)
        if isinstance(step, LineStep):
            p1 = self.point(step.p1)
            p2 = self.point(step.p2)
            if p1 is None or p2 is None:
                return None
            curve = self.line_curve(p1, p2)
            return LineValue(p1, p2, curve) if curve is not None else None
        if isinstance(step, CircleStep):
            center = self.point(step.center)
            radius_point = self.point(step.radius)
            if center is None or radius_point is None:
                return None
            curve = self.circle_curve(center, radius_point)
            return CircleValue(center, radius_point, curve) if curve is not None else None
        if isinstance(step, CircleFixedStep):
            return self._fixed_circle(step)
        raise ToolReplayError(f"Unsupported tool step {step.op!r}.")

    def _fixed_point(self, step: PointFixedStep) -> PointValue:
        if step.star and self.star is not None:
            return self.star
        if not self.planar:
            return PointValue(normalize3((step.x, step.y, step.z if step.z is not None else 0.0)))
        return PointValue((float(step.x), float(step.y)))

    def _fixed_circle(self, step: CircleFixedStep) -> Optional[CircleValue]:
        center = self.point(step.center)
        if center is None or not self.planar:
            return None
        q = (
            center.coords[0] + step.radius * math.cos(step.angle),
            center.coords[1] + step.radius * math.sin(step.angle),
        )
        radius_point = PointValue(constrain_2d_point(self.mode, q))
        curve = self.circle_curve(center, radius_point)
        if curve is None:
            return None
        return CircleValue(center, radius_point, curve)

    def _point_on(self, step: PointOnStep) -> Optional[PointValue]:
        value = self.values.get(step.curve)
        if not isinstance(value, (LineValue, CircleValue)):
            return None

        if not self.planar:
            hint = step.sphere_hint if step.sphere_hint is not None else (0.0, 0.0, 1.0)
            p = nearest_point_on_sphere_plane(value.curve, hint)
            return PointValue(p) if p is not None else None

        curve = value.curve
        hint = step.curve_hint
        p: Optional[Vec2] = None
        arc_target = self._circle_hint_angle(hint, value) if hint is not None else None
        if isinstance(value, LineValue) and isinstance(curve, LineCurve):
            a, b = value.p1.xy, value.p2.xy
            p = self._line_offset_point(step, a, b)
            if p is None and hint is not None and hint.mode == "line":
                p = line_frame_point(a, b, hint.value)
            if p is None:
                p = ((a[0] + b[0]) * 0.5, (a[1] + b[1]) * 0.5)
        elif isinstance(curve, CircleCurve) and arc_target is not None:
            p = self._arc_point(curve, *arc_target)
        else:
            # The recorded hint does not fit the curve shape; project a nearby point.
            if isinstance(value, LineValue):
                a, b = value.p1.xy, value.p2.xy
                target = None
                if hint is not None and hint.mode == "line":
                    target = line_frame_point(a, b, hint.value)
                if target is None:
                    target = ((a[0] + b[0]) * 0.5, (a[1] + b[1]) * 0.5)
            else:
                target = value.radius_point.xy
            p = project_to_curve(curve, target)

        if not is_2d_point_in_domain(self.mode, p):
            return None
        return PointValue(p)

    def _line_offset_point(self, step: PointOnStep, a: Vec2, b: Vec2) -> Optional[Vec2]:
        offset = step.line_offset
        if offset is None:
            return None
        origin = self.point(offset.origin)
        if origin is None:
            return None
        t0 = line_frame_param(a, b, origin.xy)
        if t0 is None:
            return None
        scale = line_span(a, b) / offset.span if offset.span > 0.0 else 1.0
        return line_frame_point(a, b, t0 + offset.offset * scale)

    def _circle_hint_angle(
        self, hint: CurveHint, value: Union[LineValue, CircleValue]
    ) -> Optional[Tuple[float, Optional[float]]]:
        """Target polar angle of ``hint`` on a curve drawn as a circle.

        The second item is an angle known to lie in the domain (the middle of
        the defining arc, or the radius point), or ``None`` when there is none.
        """

        curve = value.curve
        if not isinstance(curve, CircleCurve):
            return None
        center = curve.center
        if hint.mode == "arc" and isinstance(value, LineValue):
            a, b = value.p1.xy, value.p2.xy
            angle = arc_angle(center, a, b, hint.value)
            middle = arc_angle(center, a, b, 0.5)
            if angle is None:
                return None
            return angle, middle
        if hint.mode == "turn" and isinstance(value, CircleValue):
            start = polar_angle(center, value.radius_point.xy)
            if start is None:
                return None
            return start + hint.value, start
        if hint.mode == "angle":
            return hint.value, None
        return None

    def _arc_point(self, curve: CircleCurve, angle: float, anchor: Optional[float]) -> Vec2:
        """Point of ``curve`` at ``angle``, pulled back towards ``anchor`` until it is in the domain."""

        p = _on_circle(curve, angle)
        if anchor is None or is_2d_point_in_domain(self.mode, p):
            return p
        if not is_2d_point_in_domain(self.mode, _on_circle(curve, anchor)):
            return p
        inside, outside = anchor, angle
        for _ in range(60):
            mid = 0.5 * (inside + outside)
            if is_2d_point_in_domain(self.mode, _on_circle(curve, mid)):
                inside = mid
            else:
                outside = mid
        logger.debug("Recorded curve position is outside the domain; using the nearest in-domain arc point")
        return _on_circle(curve, inside)

    def _intersection(self, step: IntersectionStep) -> Optional[PointValue]:
        ca = self.curve(step.a)
        cb = self.curve(step.b)
        if ca is None or cb is None:
            return None

        if not self.planar:
            roots = intersect_sphere_planes(ca, cb)
            if not roots:
                return None
            if step.sphere_hint is None:
                return PointValue(roots[0])
            hint = step.sphere_hint
            best = min(roots, key=lambda r: math.dist(r, hint))
            return PointValue(best)

        candidates = [r for r in intersect_curves(ca, cb) if is_2d_point_in_domain(self.mode, r)]
        if not candidates:
            return None
        for name, keep in self._root_filters(step):
            kept = [r for r in candidates if keep(r)]
            if kept:
                candidates = kept
            else:
                logger.debug("Tool step %s: %s hint rejects every root; ignoring it", step.id, name)
        keys = self._root_costs(step)
        if len(candidates) > 1 and keys:
            best = min(candidates, key=lambda r: tuple(cost(r) for cost in keys))
        else:
            best = candidates[0]
        return PointValue(best)

    def _root_filters(self, step: IntersectionStep) -> List[Tuple[str, Callable[[Vec2], bool]]]:
        tol = self.config.root_match_tolerance
        filters: List[Tuple[str, Callable[[Vec2], bool]]] = []

        if step.line_side is not None:
            side_line = self.line(step.line_side.line)
            if side_line is not None:
                filters.append(("line_side", _side_filter(side_line.p1.xy, side_line.p2.xy, step.line_side.sign)))

        if step.circle_side is not None:
            circle_a = self.circle(step.a)
            circle_b = self.circle(step.b)
            if circle_a is not None and circle_b is not None:
                side = _side_filter(circle_a.center.xy, circle_b.center.xy, step.circle_side.sign)
                filters.append(("circle_side", side))

        if step.orient_ref is not None:
            origin = self.point(step.orient_ref.origin)
            direction = self.circle(step.orient_ref.direction)
            if origin is not None and direction is not None:
                filters.append(("orient_ref", _side_filter(origin.xy, direction.center.xy, step.orient_ref.sign)))

        measure = self._line_ref_measure(step)
        if measure is not None and abs(step.line_ref.value) > tol:
            line_sign = 1 if step.line_ref.value > 0.0 else -1
            filters.append(("line_ref", lambda r: _sign_of(measure(r)) == line_sign))

        if step.avoid_point is not None:
            avoid = self.point(step.avoid_point.point)
            if avoid is not None:
                filters.append(("avoid_point", lambda r: dist2(r, avoid.xy) > tol))

        if step.pair_ref is not None:
            pair = self._pair_measure(step)
            if pair is not None and abs(step.pair_ref.angle) > tol:
                pair_sign = 1 if step.pair_ref.angle > 0.0 else -1
                filters.append(("pair_ref", lambda r: _sign_of(pair(r)) == pair_sign))

        return filters

    def _root_costs(self, step: IntersectionStep) -> List[Callable[[Vec2], float]]:
        costs: List[Callable[[Vec2], float]] = []

        measure = self._line_ref_measure(step)
        if measure is not None:
            target = step.line_ref.value
            costs.append(lambda r: _gap(measure(r), target))

        pair = self._pair_measure(step)
        if pair is not None:
            angle = step.pair_ref.angle
            costs.append(lambda r: _angle_cost(pair(r), angle))

        curve_costs = [cost for cost in (self._curve_hint_cost(h) for h in step.curve_hints) if cost is not None]
        if curve_costs:
            costs.append(lambda r: sum(cost(r) for cost in curve_costs))

        return costs

    def _line_ref_measure(self, step: IntersectionStep) -> Optional[Callable[[Vec2], Optional[float]]]:
        if step.line_ref is None:
            return None
        ref_line = self.line(step.line_ref.line)
        ref_point = self.point(step.line_ref.ref_point)
        if ref_line is None or ref_point is None or not isinstance(ref_line.curve, LineCurve):
            return None
        a, b = ref_line.p1.xy, ref_line.p2.xy
        t_ref = line_frame_param(a, b, ref_point.xy)
        if t_ref is None:
            return None

        def measure(r: Vec2) -> Optional[float]:
            t = line_frame_param(a, b, r)
            return t - t_ref if t is not None else None

        return measure

    def _pair_measure(self, step: IntersectionStep) -> Optional[Callable[[Vec2], Optional[float]]]:
        if step.pair_ref is None:
            return None
        origin = self.point(step.pair_ref.origin)
        other = self.point(step.pair_ref.other_point)
        if origin is None or other is None:
            return None
        o, q = origin.xy, other.xy
        return lambda r: signed_angle(o, q, r)

    def _curve_hint_cost(self, hint: CurveHint) -> Optional[Callable[[Vec2], float]]:
        value = self.values.get(hint.node_id) if hint.node_id is not None else None
        if value is None:
            return None
        curve = value.curve if isinstance(value, (LineValue, CircleValue)) else None
        if hint.mode == "line" and isinstance(value, LineValue) and isinstance(curve, LineCurve):
            a, b = value.p1.xy, value.p2.xy
            return lambda r: _gap(line_frame_param(a, b, r), hint.value)
        if isinstance(value, (LineValue, CircleValue)) and isinstance(curve, CircleCurve):
            target = self._circle_hint_angle(hint, value)
            if target is None:
                return None
            center, angle = curve.center, target[0]
            return lambda r: _angle_cost(polar_angle(center, r), angle)
        return None


def _on_circle(curve: CircleCurve, angle: float) -> Vec2:
    return (curve.cx + curve.r * math.cos(angle), curve.cy + curve.r * math.sin(angle))


def _side_filter(a: Vec2, b: Vec2, sign: int) -> Callable[[Vec2], bool]:
    return lambda r: side_sign(a, b, r) == sign


def _gap(value: Optional[float], target: float) -> float:
    if value is None:
        return math.inf
    return abs(value - target)


def _angle_cost(value: Optional[float], target: float) -> float:
    if value is None:
        return math.inf
    return angle_gap(value, target)


def _sign_of(value: Optional[float]) -> int:
    if value is None or value == 0.0:
        return 0
    return 1 if value > 0.0 else -1


def _replay(
    mode: GeometryMode,
    doc: ConstructionDoc,
    tool: CustomTool,
    refs: Sequence[ObjectRef],
    config: ToolConfig,
) -> ToolEvaluation:
    replay = _ToolReplay(mode, doc, config)
    for step in tool.steps:
        if isinstance(step, InputStep):
            value = replay.bind_input(refs[step.input_index], step.input_index)
        else:
            value = replay.evaluate(step)
        replay.values[step.id] = value
        if value is None:
            logger.debug("Tool step %s (%s) has no valid realisation", step.id, step.op)
    return ToolEvaluation(replay.values, tool.output.node_id)


@debug_log_call(logger, log_result=False)
def evaluate_custom_tool(
    mode: Union[GeometryMode, str],
    doc: ConstructionDoc,
    tool: CustomTool,
    inputs: Sequence[RefLike],
    *,
    config: Optional[ToolConfig] = None,
) -> ToolEvaluation:
    """Evaluate every step of ``tool`` on ``inputs`` taken from ``doc``.

    Raises :class:`ToolReplayError` when the inputs do not match the tool's
    arity and kinds or are missing from ``doc``.  Degenerate geometry yields
    ``None`` values, including possibly the output.
    """

    cfg = config or get_tool_config()
    mode = GeometryMode(mode)
    refs = _check_inputs(tool, inputs)
    return _replay(mode, doc, tool, refs, cfg)


def _materialise(
    doc: ConstructionDoc,
    step: ToolStep,
    value: ToolValue,
    ids: Dict[NodeId, str],
    kinds: Dict[NodeId, str],
    hidden: bool,
) -> Optional[str]:
    if isinstance(step, PointFixedStep):
        if isinstance(value, PointValue) and value.source_id is not None:
            return value.source_id
        return doc.add_point(*value.coords, locked=True, hidden=hidden).id

    if isinstance(step, PointOnStep):
        curve_id = ids.get(step.curve)
        if curve_id is None:
            return None
        constraints = [CurveRef(kinds[step.curve], curve_id)]
        return doc.add_point(*value.coords, constraints=constraints, hidden=hidden).id

    if isinstance(step, IntersectionStep):
        a_id = ids.get(step.a)
        b_id = ids.get(step.b)
        if a_id is None or b_id is None:
            return None
        constraints = [CurveRef(kinds[step.a], a_id), CurveRef(kinds[step.b], b_id)]
        return doc.add_point(*value.coords, constraints=constraints, hidden=hidden).id

    if isinstance(step, LineStep):
        if step.p1 not in ids or step.p2 not in ids:
            return None
        return doc.add_line(ids[step.p1], ids[step.p2], hidden=hidden).id

    if isinstance(step, CircleStep):
        if step.center not in ids or step.radius not in ids:
            return None
        return doc.add_circle(ids[step.center], ids[step.radius], hidden=hidden).id

    if isinstance(step, CircleFixedStep):
        if step.center not in ids:
            return None
        radius_point = doc.add_point(*value.radius_point.coords, locked=True, hidden=True)
        return doc.add_circle(ids[step.center], radius_point.id, hidden=hidden).id

    return None


@debug_log_call(logger)
def apply_custom_tool(
    mode: Union[GeometryMode, str],
    doc: ConstructionDoc,
    tool: CustomTool,
    inputs: Sequence[RefLike],
    *,
    config: Optional[ToolConfig] = None,
) -> Tuple[ConstructionDoc, ObjectRef]:
    """Replay ``tool`` and add its objects to a copy of ``doc``.

    Intermediate objects are added hidden; the output stays visible.  ``doc``
    itself is never modified.  Returns the new document and a reference to the
    output object.
    """

    cfg = config or get_tool_config()
    mode = GeometryMode(mode)
    refs = _check_inputs(tool, inputs)
    evaluation = _replay(mode, doc, tool, refs, cfg)
    if evaluation.output is None:
        raise ToolReplayError(f"Custom tool {tool.name!r} has no valid result for these inputs.")

    new_doc = copy.deepcopy(doc)
    ids: Dict[NodeId, str] = {}
    kinds: Dict[NodeId, str] = {step.id: step.kind for step in tool.steps}
    for step in tool.steps:
        if isinstance(step, InputStep):
            ids[step.id] = refs[step.input_index].id
            continue
        value = evaluation.values.get(step.id)
        if value is None:
            continue
        obj_id = _materialise(new_doc, step, value, ids, kinds, hidden=step.id != tool.output.node_id)
        if obj_id is not None:
            ids[step.id] = obj_id

    out_id = ids.get(tool.output.node_id)
    if out_id is None:
        raise ToolReplayError(f"Custom tool {tool.name!r} has no valid result for these inputs.")
    logger.info("Applied custom tool %r: output %s:%s", tool.name, tool.output.kind, out_id)
    return new_doc, ObjectRef(tool.output.kind, out_id)


__all__ = [
    "PointValue",
    "LineValue",
    "CircleValue",
    "ToolValue",
    "ToolEvaluation",
    "evaluate_custom_tool",
    "apply_custom_tool",
]
