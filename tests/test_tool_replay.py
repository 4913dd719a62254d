import logging
import math

import pytest

from compass_kernel.charts import poincare_translate
from compass_kernel.curves import signed_distance_to_curve
from compass_kernel.derive import derive_curve, is_2d_point_in_domain, line_curve_from_coords
from compass_kernel.model import ConstructionDoc, CurveRef, ObjectRef, create_empty_doc
from compass_kernel.sphere import normalize3
from compass_kernel.tools import (
    CircleSideHint,
    CustomTool,
    InputStep,
    IntersectionStep,
    ToolOutput,
    ToolReplayError,
    apply_custom_tool,
    build_custom_tool,
    evaluate_custom_tool,
)
from compass_kernel.tools.math_utils import arc_fraction
from compass_kernel.types import GeometryMode
from compass_kernel.workspace import apply_registered_tool, create_workspace, register_custom_tool

E = GeometryMode.EUCLIDEAN
INV = GeometryMode.INVERSIVE_EUCLIDEAN


def _pt(point):
    return ObjectRef("point", point.id)


def _close(p, q, tol=1e-9):
    return all(math.isclose(a, b, abs_tol=tol) for a, b in zip(p, q))


def _point_on_line_tool():
    doc = create_empty_doc(E)
    a = doc.add_point(0.0, 0.0)
    b = doc.add_point(2.0, 0.0)
    line = doc.add_line(a.id, b.id)
    p = doc.add_point(1.0, 0.0, constraints=[CurveRef("line", line.id)])
    return build_custom_tool(E, doc, "step along", [_pt(a), _pt(b)], _pt(p))


def _target_doc(*coords, mode=E):
    doc = create_empty_doc(mode)
    points = [doc.add_point(*xy) for xy in coords]
    return doc, points


def test_point_on_line_follows_the_new_frame():
    tool = _point_on_line_tool()
    doc, (a, b) = _target_doc((1.0, 1.0), (1.0, 5.0))

    evaluation = evaluate_custom_tool(E, doc, tool, [_pt(a), _pt(b)])

    assert _close(evaluation.output.coords, (1.0, 2.0))


def test_radius_point_offset_scales_with_the_line():
    doc = create_empty_doc(E)
    a = doc.add_point(0.0, 0.0)
    b = doc.add_point(4.0, 0.0)
    line = doc.add_line(a.id, b.id)
    p = doc.add_point(1.0, 0.0, constraints=[CurveRef("line", line.id)])
    circle = doc.add_circle(a.id, p.id)
    tool = build_custom_tool(E, doc, "quarter ring", [_pt(a), _pt(b)], ObjectRef("circle", circle.id))
    target, (a2, b2) = _target_doc((0.0, 0.0), (0.0, 8.0))

    evaluation = evaluate_custom_tool(E, target, tool, [_pt(a2), _pt(b2)])

    assert tool.steps[-2].line_offset.span == pytest.approx(4.0)
    assert evaluation.output.curve.r == pytest.approx(2.0)
    assert _close(evaluation.output.radius_point.coords, (0.0, 2.0))


def test_circle_line_picks_the_root_away_from_the_radius_point():
    doc = create_empty_doc(E)
    a = doc.add_point(0.0, 0.0)
    b = doc.add_point(2.0, 0.0)
    circle = doc.add_circle(a.id, b.id)
    line = doc.add_line(a.id, b.id)
    x = doc.add_point(-2.0, 0.0, constraints=[CurveRef("circle", circle.id), CurveRef("line", line.id)])
    tool = build_custom_tool(E, doc, "far end", [_pt(a), _pt(b)], _pt(x))
    target, (a2, b2) = _target_doc((1.0, 1.0), (1.0, 3.0))

    evaluation = evaluate_custom_tool(E, target, tool, [_pt(a2), _pt(b2)])

    assert _close(evaluation.output.coords, (1.0, -1.0))


def test_fixed_circle_keeps_its_radius_and_line_parameter_sign():
    doc = create_empty_doc(E)
    a = doc.add_point(0.0, 0.0)
    b = doc.add_point(1.0, 0.0)
    r = doc.add_point(3.0, 4.0)
    circle = doc.add_circle(a.id, r.id)
    line = doc.add_line(a.id, b.id)
    x = doc.add_point(5.0, 0.0, constraints=[CurveRef("circle", circle.id), CurveRef("line", line.id)])
    tool = build_custom_tool(E, doc, "five along", [_pt(a), _pt(b)], _pt(x))
    target, (a2, b2) = _target_doc((1.0, 1.0), (1.0, 2.0))

    evaluation = evaluate_custom_tool(E, target, tool, [_pt(a2), _pt(b2)])

    assert _close(evaluation.output.coords, (1.0, 6.0))


@pytest.mark.parametrize(
    "a_xy, b_xy, expected",
    [
        ((0.0, 0.0), (2.0, 0.0), (1.0, math.sqrt(3.0))),
        ((0.0, 0.0), (0.0, 2.0), (-math.sqrt(3.0), 1.0)),
        ((2.0, 0.0), (0.0, 0.0), (1.0, -math.sqrt(3.0))),
    ],
)
def test_circle_circle_keeps_the_recorded_side(a_xy, b_xy, expected):
    doc = create_empty_doc(E)
    a = doc.add_point(0.0, 0.0)
    b = doc.add_point(2.0, 0.0)
    c1 = doc.add_circle(a.id, b.id)
    c2 = doc.add_circle(b.id, a.id)
    x = doc.add_point(1.0, math.sqrt(3.0), constraints=[CurveRef("circle", c1.id), CurveRef("circle", c2.id)])
    tool = build_custom_tool(E, doc, "apex", [_pt(a), _pt(b)], _pt(x))
    target, (a2, b2) = _target_doc(a_xy, b_xy)

    evaluation = evaluate_custom_tool(E, target, tool, [_pt(a2), _pt(b2)])

    assert _close(evaluation.output.coords, expected)


def test_input_arity_and_kinds_are_checked():
    tool = _point_on_line_tool()
    doc, (a, b) = _target_doc((0.0, 0.0), (1.0, 0.0))
    line = doc.add_line(a.id, b.id)

    with pytest.raises(ToolReplayError, match="expects 2 inputs"):
        evaluate_custom_tool(E, doc, tool, [_pt(a)])
    with pytest.raises(ToolReplayError, match="must be a point"):
        evaluate_custom_tool(E, doc, tool, [_pt(a), ObjectRef("line", line.id)])
    with pytest.raises(ToolReplayError, match="not found"):
        evaluate_custom_tool(E, doc, tool, [_pt(a), ObjectRef("point", "p99")])


def test_degenerate_inputs_have_no_output():
    tool = _point_on_line_tool()
    doc, (a, b) = _target_doc((1.0, 1.0), (1.0, 1.0))

    evaluation = evaluate_custom_tool(E, doc, tool, [_pt(a), _pt(b)])

    assert evaluation.output is None
    with pytest.raises(ToolReplayError, match="no valid result"):
        apply_custom_tool(E, doc, tool, [_pt(a), _pt(b)])


def test_apply_adds_hidden_intermediates_and_a_visible_output():
    tool = _point_on_line_tool()
    doc, (a, b) = _target_doc((1.0, 1.0), (1.0, 5.0))
    before = doc.to_dict()

    new_doc, output = apply_custom_tool(E, doc, tool, [_pt(a), _pt(b)])

    assert doc.to_dict() == before
    assert output.kind == "point"
    point = new_doc.point(output.id)
    assert not point.hidden
    assert _close(point.xy, (1.0, 2.0))
    assert len(new_doc.lines) == 1
    line = new_doc.lines[0]
    assert line.hidden
    assert (line.p1, line.p2) == (a.id, b.id)
    assert point.constraints == [CurveRef("line", line.id)]


def test_apply_materialises_the_fixed_radius_point():
    doc = create_empty_doc(E)
    a = doc.add_point(0.0, 0.0)
    r = doc.add_point(3.0, 4.0)
    circle = doc.add_circle(a.id, r.id)
    tool = build_custom_tool(E, doc, "ring", [_pt(a)], ObjectRef("circle", circle.id))
    target, (a2,) = _target_doc((10.0, 10.0))

    new_doc, output = apply_custom_tool(E, target, tool, [_pt(a2)])

    new_circle = new_doc.circle(output.id)
    radius_point = new_doc.point(new_circle.radius_point)
    assert new_circle.center == a2.id and not new_circle.hidden
    assert radius_point.hidden and radius_point.locked
    assert _close(radius_point.xy, (13.0, 14.0))


def test_spherical_intersection_picks_the_root_nearest_the_recording():
    doc = ConstructionDoc()
    e1 = doc.add_point(1.0, 0.0, 0.0)
    e2 = doc.add_point(0.0, 1.0, 0.0)
    north = doc.add_point(0.0, 0.0, 1.0)
    equator = doc.add_line(e1.id, e2.id)
    meridian = doc.add_line(north.id, e1.id)
    x = doc.add_point(
        -1.0, 0.0, 0.0, constraints=[CurveRef("line", equator.id), CurveRef("line", meridian.id)]
    )
    tool = build_custom_tool(
        GeometryMode.SPHERICAL,
        doc,
        "antipode",
        [ObjectRef("line", equator.id), ObjectRef("line", meridian.id)],
        _pt(x),
    )
    tilted = doc.add_point(*normalize3((1.0, 0.2, 0.0)))
    other = doc.add_line(north.id, tilted.id)

    evaluation = evaluate_custom_tool(
        GeometryMode.SPHERICAL, doc, tool, [ObjectRef("line", equator.id), ObjectRef("line", other.id)]
    )

    assert _close(evaluation.output.coords, normalize3((-1.0, -0.2, 0.0)))


def test_inversive_replay_reuses_the_star():
    doc = create_empty_doc(INV)
    a = doc.add_point(1.0, 0.0)
    line = doc.add_line(doc.star_point_id, a.id)
    p = doc.add_point(2.0, 0.0, constraints=[CurveRef("line", line.id)])
    tool = build_custom_tool(INV, doc, "ray", [_pt(a)], _pt(p))
    target, (a2,) = _target_doc((0.0, 3.0), mode=INV)

    new_doc, output = apply_custom_tool(INV, target, tool, [_pt(a2)])

    assert _close(new_doc.point(output.id).xy, (0.0, 2.0))
    assert [pt.id for pt in new_doc.points if pt.locked] == [target.star_point_id]
    assert new_doc.lines[0].p1 == target.star_point_id


def test_workspace_registers_and_applies_tools():
    workspace = create_workspace()
    tool = _point_on_line_tool()

    first = register_custom_tool(workspace, E, tool)
    second = register_custom_tool(workspace, E, tool)
    doc = workspace.doc(E)
    a = doc.add_point(1.0, 1.0)
    b = doc.add_point(1.0, 5.0)
    output = apply_registered_tool(workspace, E, first.id, [_pt(a), _pt(b)])

    assert (first.id, second.id) == ("t1", "t2")
    assert workspace.doc(E) is not doc
    assert _close(workspace.doc(E).point(output.id).xy, (1.0, 2.0))
    assert workspace.tools(GeometryMode.SPHERICAL) == []
    with pytest.raises(ToolReplayError):
        apply_registered_tool(workspace, E, "t9", [_pt(a), _pt(b)])


def test_workspace_dict_round_trip():
    workspace = create_workspace(GeometryMode.HYPERBOLIC_POINCARE)
    register_custom_tool(workspace, E, _point_on_line_tool())
    workspace.doc(INV).add_point(2.0, 3.0)

    data = workspace.to_dict()
    restored = type(workspace).from_dict(data)

    assert restored.to_dict() == data
    assert restored.active_mode is GeometryMode.HYPERBOLIC_POINCARE
    assert restored.doc(INV).star_point is not None
    assert restored.tool(E, "t1").name == "step along"


HP = GeometryMode.HYPERBOLIC_POINCARE
HH = GeometryMode.HYPERBOLIC_HALF_PLANE

# Centre height of the Poincaré geodesic through (-0.5, 0.2) and (0.5, 0.2).
GEODESIC_CY = 3.225
APEX_Y = GEODESIC_CY - math.sqrt(GEODESIC_CY * GEODESIC_CY - 1.0)
ROOT2 = math.sqrt(2.0)


def _geodesic_point_tool(mode, a_xy, b_xy, p_xy):
    doc = create_empty_doc(mode)
    a = doc.add_point(*a_xy)
    b = doc.add_point(*b_xy)
    line = doc.add_line(a.id, b.id)
    p = doc.add_point(*p_xy, constraints=[CurveRef("line", line.id)])
    return build_custom_tool(mode, doc, "on geodesic", [_pt(a), _pt(b)], _pt(p))


def _mirror_tool(mode, a_xy, b_xy, x_xy):
    doc = create_empty_doc(mode)
    a = doc.add_point(*a_xy)
    b = doc.add_point(*b_xy)
    circle = doc.add_circle(a.id, b.id)
    line = doc.add_line(a.id, b.id)
    x = doc.add_point(*x_xy, constraints=[CurveRef("circle", circle.id), CurveRef("line", line.id)])
    return build_custom_tool(mode, doc, "mirror", [_pt(a), _pt(b)], _pt(x))


def _assert_on_geodesic(mode, a_xy, b_xy, p):
    assert p is not None
    assert is_2d_point_in_domain(mode, p.coords)
    geodesic = line_curve_from_coords(mode, a_xy, b_xy)
    assert abs(signed_distance_to_curve(geodesic, p.coords)) < 1e-9


@pytest.mark.parametrize(
    "a_xy, b_xy, expected",
    [
        ((-0.5, 0.2), (0.5, 0.2), (0.0, APEX_Y)),
        ((0.5, -0.2), (-0.5, -0.2), (0.0, -APEX_Y)),
        ((-0.5, -0.2), (0.5, -0.2), (0.0, -APEX_Y)),
        ((0.2, 0.5), (0.2, -0.5), (APEX_Y, 0.0)),
    ],
)
def test_point_on_a_poincare_geodesic_follows_rotations_and_reflections(a_xy, b_xy, expected):
    tool = _geodesic_point_tool(HP, (-0.5, 0.2), (0.5, 0.2), (0.0, APEX_Y))
    doc, (a, b) = _target_doc(a_xy, b_xy, mode=HP)

    evaluation = evaluate_custom_tool(HP, doc, tool, [_pt(a), _pt(b)])

    _assert_on_geodesic(HP, a_xy, b_xy, evaluation.output)
    assert _close(evaluation.output.coords, expected)


def test_point_on_a_moved_poincare_geodesic_stays_between_its_ends():
    tool = _geodesic_point_tool(HP, (-0.5, 0.2), (0.5, 0.2), (0.0, APEX_Y))
    shift = (0.3, -0.2)
    a_xy = poincare_translate((-0.5, 0.2), shift)
    b_xy = poincare_translate((0.5, 0.2), shift)
    doc, (a, b) = _target_doc(a_xy, b_xy, mode=HP)

    evaluation = evaluate_custom_tool(HP, doc, tool, [_pt(a), _pt(b)])

    _assert_on_geodesic(HP, a_xy, b_xy, evaluation.output)
    geodesic = line_curve_from_coords(HP, a_xy, b_xy)
    assert 0.0 < arc_fraction(geodesic.center, a_xy, b_xy, evaluation.output.coords) < 1.0


@pytest.mark.parametrize(
    "a_xy, b_xy, expected",
    [
        ((2.0, 1.0), (4.0, 1.0), (3.0, ROOT2)),
        ((-2.0, 2.0), (2.0, 2.0), (0.0, 2.0 * ROOT2)),
        ((1.0, 1.0), (-1.0, 1.0), (0.0, ROOT2)),
    ],
)
def test_point_on_a_half_plane_geodesic_follows_isometries(a_xy, b_xy, expected):
    tool = _geodesic_point_tool(HH, (-1.0, 1.0), (1.0, 1.0), (0.0, ROOT2))
    doc, (a, b) = _target_doc(a_xy, b_xy, mode=HH)

    evaluation = evaluate_custom_tool(HH, doc, tool, [_pt(a), _pt(b)])

    _assert_on_geodesic(HH, a_xy, b_xy, evaluation.output)
    assert _close(evaluation.output.coords, expected)


def test_point_past_the_boundary_is_pulled_back_into_the_half_plane():
    angle = math.radians(9.0)
    tool = _geodesic_point_tool(HH, (-1.0, 1.0), (1.0, 1.0), (ROOT2 * math.cos(angle), ROOT2 * math.sin(angle)))
    b_xy = (ROOT2 * math.cos(math.radians(30.0)), ROOT2 * math.sin(math.radians(30.0)))
    doc, (a, b) = _target_doc((-1.0, 1.0), b_xy, mode=HH)

    evaluation = evaluate_custom_tool(HH, doc, tool, [_pt(a), _pt(b)])

    assert tool.steps[-1].curve_hint.value == pytest.approx(1.4)
    _assert_on_geodesic(HH, (-1.0, 1.0), b_xy, evaluation.output)
    assert _close(evaluation.output.coords, (ROOT2, 0.0), tol=1e-6)


@pytest.mark.parametrize(
    "a_xy, b_xy, expected",
    [
        ((0.0, -APEX_Y), (0.5, -0.2), (-0.5, -0.2)),
        ((0.0, APEX_Y), (0.5, 0.2), (-0.5, 0.2)),
        (
            poincare_translate((0.0, APEX_Y), (0.2, 0.1)),
            poincare_translate((-0.5, 0.2), (0.2, 0.1)),
            poincare_translate((0.5, 0.2), (0.2, 0.1)),
        ),
    ],
)
def test_geodesic_meets_poincare_circle_at_the_mirror_point(a_xy, b_xy, expected):
    tool = _mirror_tool(HP, (0.0, APEX_Y), (-0.5, 0.2), (0.5, 0.2))
    doc, (a, b) = _target_doc(a_xy, b_xy, mode=HP)

    evaluation = evaluate_custom_tool(HP, doc, tool, [_pt(a), _pt(b)])

    assert evaluation.output is not None
    assert _close(evaluation.output.coords, expected, tol=1e-7)


@pytest.mark.parametrize(
    "a_xy, b_xy, expected",
    [
        ((3.0, ROOT2), (2.0, 1.0), (4.0, 1.0)),
        ((0.0, 2.0 * ROOT2), (-2.0, 2.0), (2.0, 2.0)),
        ((0.0, ROOT2), (1.0, 1.0), (-1.0, 1.0)),
    ],
)
def test_geodesic_meets_half_plane_circle_at_the_mirror_point(a_xy, b_xy, expected):
    tool = _mirror_tool(HH, (0.0, ROOT2), (-1.0, 1.0), (1.0, 1.0))
    doc, (a, b) = _target_doc(a_xy, b_xy, mode=HH)

    evaluation = evaluate_custom_tool(HH, doc, tool, [_pt(a), _pt(b)])

    assert evaluation.output is not None
    assert _close(evaluation.output.coords, expected, tol=1e-7)


@pytest.mark.parametrize(
    "mode, center_xy, radius_xy, target_xy, expected_radius_xy",
    [
        (HP, (0.0, 0.0), (0.3, 0.0), (0.2, 0.1), (0.5, 0.1)),
        (HH, (0.0, 1.0), (0.0, 2.0), (3.0, 2.0), (3.0, 3.0)),
    ],
)
def test_hyperbolic_fixed_circle_keeps_its_chart_offset(mode, center_xy, radius_xy, target_xy, expected_radius_xy):
    doc = create_empty_doc(mode)
    a = doc.add_point(*center_xy)
    r = doc.add_point(*radius_xy)
    circle = doc.add_circle(a.id, r.id)
    tool = build_custom_tool(mode, doc, "ring", [_pt(a)], ObjectRef("circle", circle.id))
    target, (a2,) = _target_doc(target_xy, mode=mode)

    new_doc, output = apply_custom_tool(mode, target, tool, [_pt(a2)])

    new_circle = new_doc.circle(output.id)
    radius_point = new_doc.point(new_circle.radius_point)
    assert _close(radius_point.xy, expected_radius_xy)
    curve = derive_curve(mode, new_doc, CurveRef("circle", new_circle.id))
    assert abs(signed_distance_to_curve(curve, radius_point.xy)) < 1e-9
    if mode is HP:
        assert math.hypot(curve.cx, curve.cy) + curve.r < 1.0
    else:
        assert curve.cy - curve.r > 0.0


def test_tangent_circles_ignore_the_side_hint_and_log_it(caplog):
    tool = CustomTool(
        id="t1",
        name="touch",
        inputs=["circle", "circle"],
        steps=[
            InputStep("in0", "circle", 0),
            InputStep("in1", "circle", 1),
            IntersectionStep("n0", a="in0", b="in1", circle_side=CircleSideHint(1)),
        ],
        output=ToolOutput("point", "n0"),
    )
    doc, (o, q, p) = _target_doc((0.0, 0.0), (1.0, 0.0), (2.0, 0.0))
    c1 = doc.add_circle(o.id, q.id)
    c2 = doc.add_circle(p.id, q.id)

    with caplog.at_level(logging.DEBUG, logger="compass_kernel.tools.replay"):
        evaluation = evaluate_custom_tool(E, doc, tool, [ObjectRef("circle", c1.id), ObjectRef("circle", c2.id)])

    assert _close(evaluation.output.coords, (1.0, 0.0))
    assert "circle_side hint rejects every root" in caplog.text
