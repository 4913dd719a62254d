import math

import pytest

from compass_kernel.types import GeometryMode
from compass_kernel.views import (
    PITCH_LIMIT,
    SphereView,
    View2D,
    default_view,
    hyperboloid_viewport,
    pan_2d,
    project_poincare_on_hyperboloid,
    project_sphere,
    rotate_by_drag,
    rotate_from_view,
    rotate_to_view,
    screen_to_hyperboloid_poincare,
    screen_to_sphere_point,
    screen_to_world,
    sphere_viewport,
    view_from_dict,
    world_to_screen,
    wrap_angle,
    zoom_2d_at,
    zoom_sphere,
)


def _close(p, q, tol=1e-9):
    return all(math.isclose(a, b, abs_tol=tol) for a, b in zip(p, q))


def test_world_screen_round_trip_flips_y():
    view = View2D(scale=90.0, offset_x=400.0, offset_y=300.0)

    screen = world_to_screen(view, (1.0, 2.0))

    assert screen == (490.0, 120.0)
    assert _close(screen_to_world(view, screen), (1.0, 2.0))


def test_pan_moves_the_offset():
    view = View2D(scale=90.0)

    pan_2d(view, 15.0, -5.0)

    assert (view.offset_x, view.offset_y) == (15.0, -5.0)


def test_zoom_keeps_the_anchor_fixed():
    view = View2D(scale=90.0, offset_x=400.0, offset_y=300.0)
    anchor = (123.0, 456.0)
    before = screen_to_world(view, anchor)

    zoom_2d_at(view, 1.7, anchor)

    assert math.isclose(view.scale, 153.0)
    assert _close(screen_to_world(view, anchor), before)


@pytest.mark.parametrize("factor, expected", [(100.0, 6000.0), (0.001, 10.0)])
def test_zoom_is_clamped(factor, expected):
    view = View2D(scale=90.0)

    zoom_2d_at(view, factor, (0.0, 0.0))

    assert view.scale == expected


def test_default_views_per_mode():
    assert isinstance(default_view(GeometryMode.SPHERICAL), SphereView)
    assert default_view(GeometryMode.HYPERBOLIC_POINCARE).scale == 260.0
    assert default_view(GeometryMode.HYPERBOLIC_HALF_PLANE).scale == 120.0
    assert default_view(GeometryMode.EUCLIDEAN).scale == 90.0


def test_view_dict_round_trip():
    view = SphereView(yaw=0.4, pitch=-0.2, zoom=1.5, roll=0.1, chart_offset_x=0.2)

    assert view_from_dict(view.to_dict()) == view
    assert view_from_dict(View2D(scale=12.0).to_dict()) == View2D(scale=12.0)
    with pytest.raises(ValueError):
        view_from_dict({"kind": "3d"})


def test_rotation_is_orthogonal_and_invertible():
    view = SphereView(yaw=0.6, pitch=-0.25, roll=0.3)
    p = (0.2, -0.7, 0.5)

    rotated = rotate_to_view(view, p)

    assert math.isclose(math.sqrt(sum(c * c for c in rotated)), math.sqrt(sum(c * c for c in p)))
    assert _close(rotate_from_view(view, rotated), p)


def test_drag_clamps_pitch():
    view = SphereView()

    rotate_by_drag(view, 10.0, 1e6)

    assert view.pitch == PITCH_LIMIT
    assert view.yaw > 0.0


def test_sphere_zoom_is_clamped():
    view = SphereView()
    for _ in range(100):
        zoom_sphere(view, 1.0)

    assert view.zoom == 0.35


def test_wrap_angle():
    assert math.isclose(wrap_angle(3.0 * math.pi / 2.0), -math.pi / 2.0)
    assert wrap_angle(math.inf) == 0.0


def test_screen_centre_picks_the_point_facing_the_camera():
    view = SphereView(yaw=0.6, pitch=-0.25)
    vp = sphere_viewport(view, 800.0, 600.0)

    p = screen_to_sphere_point(view, (vp.cx, vp.cy), vp)

    assert vp.r == pytest.approx(600.0 * 0.42)
    assert _close(rotate_to_view(view, p), (0.0, 0.0, 1.0))


def test_sphere_pick_outside_the_disc_is_none():
    view = SphereView()
    vp = sphere_viewport(view, 800.0, 600.0)

    assert screen_to_sphere_point(view, (vp.cx + vp.r + 1.0, vp.cy), vp) is None


def test_sphere_projection_round_trip():
    view = SphereView(yaw=0.3, pitch=0.2)
    vp = sphere_viewport(view, 640.0, 480.0)
    p = rotate_from_view(view, (0.3, 0.4, math.sqrt(1.0 - 0.25)))

    sx, sy, depth = project_sphere(rotate_to_view(view, p), vp)

    assert depth > 0.0
    assert _close(screen_to_sphere_point(view, (sx, sy), vp), p)


@pytest.mark.parametrize("offset", [(0.0, 0.0), (0.2, -0.1)])
@pytest.mark.parametrize("p", [(0.0, 0.0), (0.3, 0.2), (-0.5, 0.4)])
def test_hyperboloid_projection_round_trip(p, offset):
    view = SphereView(chart_offset_x=offset[0], chart_offset_y=offset[1])
    vp = hyperboloid_viewport(view, 800.0, 600.0)

    projected = project_poincare_on_hyperboloid(view, vp, p)

    assert projected is not None
    back = screen_to_hyperboloid_poincare(view, projected[:2], vp)
    assert back is not None
    assert _close(back, p, tol=1e-7)
