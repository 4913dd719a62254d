from .types import (
    EPS,
    CircleCurve,
    Curve2D,
    GeometryMode,
    HyperbolicChart,
    LineCurve,
    SpherePlane,
    curve_from_dict,
)
from .curves import (
    circle_through3,
    half_plane_geodesic,
    intersect_curves,
    line_through,
    poincare_geodesic,
    project_to_curve,
    signed_distance_to_curve,
)
from .charts import (
    clamp_to_poincare_disk,
    display_2d_to_internal,
    half_plane_distance,
    half_plane_to_poincare,
    hyperboloid_to_poincare,
    internal_to_display_2d,
    klein_to_poincare,
    poincare_distance,
    poincare_to_half_plane,
    poincare_to_hyperboloid,
    poincare_to_klein,
    poincare_translate,
    spherical_distance,
)
from .sphere import (
    intersect_sphere_planes,
    normalize3,
    sphere_to_stereographic,
    stereographic_to_sphere,
)
from .model import (
    Circle,
    ConstructionDoc,
    CurveRef,
    Line,
    ObjectRef,
    Point,
    Style,
    create_empty_doc,
)
from .derive import (
    constrain_2d_point,
    derive_2d_circle_curve,
    derive_2d_line_curve,
    derive_curve,
    derive_sphere_circle,
    derive_sphere_great_circle,
    is_2d_point_in_domain,
)
from .views import SphereView, View2D, default_view
from .tools import (
    CustomTool,
    ToolBuildError,
    ToolConfig,
    ToolEvaluation,
    ToolReplayError,
    apply_custom_tool,
    build_custom_tool,
    evaluate_custom_tool,
    get_tool_config,
    set_tool_config,
)
from .workspace import Workspace, apply_registered_tool, create_workspace, register_custom_tool

__all__ = [
    'EPS',
    'GeometryMode',
    'HyperbolicChart',
    'LineCurve',
    'CircleCurve',
    'Curve2D',
    'SpherePlane',
    'curve_from_dict',
    'line_through',
    'circle_through3',
    'intersect_curves',
    'signed_distance_to_curve',
    'project_to_curve',
    'poincare_geodesic',
    'half_plane_geodesic',
    'clamp_to_poincare_disk',
    'poincare_translate',
    'poincare_to_half_plane',
    'half_plane_to_poincare',
    'poincare_to_klein',
    'klein_to_poincare',
    'poincare_to_hyperboloid',
    'hyperboloid_to_poincare',
    'poincare_distance',
    'half_plane_distance',
    'spherical_distance',
    'internal_to_display_2d',
    'display_2d_to_internal',
    'normalize3',
    'intersect_sphere_planes',
    'sphere_to_stereographic',
    'stereographic_to_sphere',
    'ObjectRef',
    'CurveRef',
    'Style',
    'Point',
    'Line',
    'Circle',
    'ConstructionDoc',
    'create_empty_doc',
    'derive_2d_line_curve',
    'derive_2d_circle_curve',
    'derive_sphere_great_circle',
    'derive_sphere_circle',
    'derive_curve',
    'is_2d_point_in_domain',
    'constrain_2d_point',
    'View2D',
    'SphereView',
    'default_view',
    'CustomTool',
    'ToolConfig',
    'ToolBuildError',
    'ToolReplayError',
    'ToolEvaluation',
    'build_custom_tool',
    'evaluate_custom_tool',
    'apply_custom_tool',
    'get_tool_config',
    'set_tool_config',
    'Workspace',
    'create_workspace',
    'register_custom_tool',
    'apply_registered_tool',
]
