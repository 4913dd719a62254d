"""Caller-owned session state: one document and view per geometry mode."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Sequence, Union

from .model import ConstructionDoc, ObjectRef, create_empty_doc
from .tools.model import CustomTool, ToolReplayError
from .tools.replay import apply_custom_tool
from .types import GeometryMode, HyperbolicChart
from .views import SphereView, ViewState, default_hyperboloid_view, default_view, view_from_dict

logger = logging.getLogger(__name__)


@dataclass
class Workspace:
    docs: Dict[GeometryMode, ConstructionDoc] = field(default_factory=dict)
    views: Dict[GeometryMode, ViewState] = field(default_factory=dict)
    custom_tools: Dict[GeometryMode, List[CustomTool]] = field(default_factory=dict)
    next_tool_id: int = 1
    active_mode: GeometryMode = GeometryMode.EUCLIDEAN
    hyperbolic_chart: HyperbolicChart = HyperbolicChart.POINCARE
    hyperboloid_view: SphereView = field(default_factory=default_hyperboloid_view)

    def doc(self, mode: Optional[GeometryMode] = None) -> ConstructionDoc:
        return self.docs[mode or self.active_mode]

    def view(self, mode: Optional[GeometryMode] = None) -> ViewState:
        return self.views[mode or self.active_mode]

    def tools(self, mode: Optional[GeometryMode] = None) -> List[CustomTool]:
        return self.custom_tools.setdefault(mode or self.active_mode, [])

    def tool(self, mode: GeometryMode, tool_id: str) -> Optional[CustomTool]:
        for tool in self.tools(mode):
            if tool.id == tool_id:
                return tool
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "docs": {mode.value: doc.to_dict() for mode, doc in self.docs.items()},
            "views": {mode.value: view.to_dict() for mode, view in self.views.items()},
            "custom_tools": {
                mode.value: [tool.to_dict() for tool in tools] for mode, tools in self.custom_tools.items()
            },
            "next_tool_id": self.next_tool_id,
            "active_mode": self.active_mode.value,
            "hyperbolic_chart": self.hyperbolic_chart.value,
            "hyperboloid_view": self.hyperboloid_view.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Workspace":
        workspace = create_workspace(GeometryMode(data.get("active_mode", GeometryMode.EUCLIDEAN.value)))
        for key, doc in (data.get("docs") or {}).items():
            workspace.docs[GeometryMode(key)] = ConstructionDoc.from_dict(doc)
        for key, view in (data.get("views") or {}).items():
            workspace.views[GeometryMode(key)] = view_from_dict(view)
        for key, tools in (data.get("custom_tools") or {}).items():
            workspace.custom_tools[GeometryMode(key)] = [CustomTool.from_dict(t) for t in tools]
        workspace.next_tool_id = int(data.get("next_tool_id", 1))
        workspace.hyperbolic_chart = HyperbolicChart(data.get("hyperbolic_chart", HyperbolicChart.POINCARE.value))
        hyperboloid = data.get("hyperboloid_view")
        if hyperboloid is not None:
            view = view_from_dict(hyperboloid)
            if not isinstance(view, SphereView):
                raise ValueError("hyperboloid_view must be a sphere-style view")
            workspace.hyperboloid_view = view
        return workspace


def create_workspace(active_mode: GeometryMode = GeometryMode.EUCLIDEAN) -> Workspace:
    """Return a workspace with an empty document and default view for every mode."""

    workspace = Workspace(active_mode=GeometryMode(active_mode))
    for mode in GeometryMode:
        workspace.docs[mode] = create_empty_doc(mode)
        workspace.views[mode] = default_view(mode)
        workspace.custom_tools[mode] = []
    return workspace


def register_custom_tool(workspace: Workspace, mode: GeometryMode, tool: CustomTool) -> CustomTool:
    """Store a copy of ``tool`` under a fresh ``t<n>`` id and return it."""

    registered = replace(tool, id=f"t{workspace.next_tool_id}")
    workspace.next_tool_id += 1
    workspace.tools(mode).append(registered)
    logger.info("Registered custom tool %s (%r) for %s", registered.id, registered.name, mode.value)
    return registered


def apply_registered_tool(
    workspace: Workspace,
    mode: GeometryMode,
    tool_id: str,
    inputs: Sequence[Union[ObjectRef, Dict[str, Any]]],
) -> ObjectRef:
    """Apply a registered tool and replace the mode's document with the result."""

    tool = workspace.tool(mode, tool_id)
    if tool is None:
        raise ToolReplayError(f"Unknown custom tool {tool_id!r}.")
    new_doc, output = apply_custom_tool(mode, workspace.doc(mode), tool, inputs)
    workspace.docs[mode] = new_doc
    return output


__all__ = [
    "Workspace",
    "create_workspace",
    "register_custom_tool",
    "apply_registered_tool",
]
