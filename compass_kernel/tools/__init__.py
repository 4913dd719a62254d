from .builder import build_custom_tool
from .config import get_tool_config, set_tool_config
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
    OrientationHint,
    PairHint,
    PointFixedStep,
    PointOnStep,
    ToolBuildError,
    ToolConfig,
    ToolOutput,
    ToolReplayError,
    ToolStep,
    step_from_dict,
    step_to_dict,
)
from .replay import (
    CircleValue,
    LineValue,
    PointValue,
    ToolEvaluation,
    ToolValue,
    apply_custom_tool,
    evaluate_custom_tool,
)

__all__ = [
    'build_custom_tool',
    'evaluate_custom_tool',
    'apply_custom_tool',
    'get_tool_config',
    'set_tool_config',
    'ToolConfig',
    'ToolBuildError',
    'ToolReplayError',
    'CustomTool',
    'ToolOutput',
    'ToolStep',
    'InputStep',
    'PointFixedStep',
    'PointOnStep',
    'IntersectionStep',
    'LineStep',
    'CircleStep',
    'CircleFixedStep',
    'CurveHint',
    'LineOffsetHint',
    'LineRefHint',
    'LineSideHint',
    'CircleSideHint',
    'OrientationHint',
    'PairHint',
    'AvoidPointHint',
    'step_to_dict',
    'step_from_dict',
    'ToolEvaluation',
    'ToolValue',
    'PointValue',
    'LineValue',
    'CircleValue',
]
