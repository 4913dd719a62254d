import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from compass_kernel import (
    ConstructionDoc,
    CurveRef,
    CustomTool,
    GeometryMode,
    ObjectRef,
    SpherePlane,
    ToolReplayError,
    apply_custom_tool,
    derive_curve,
    intersect_curves,
    intersect_sphere_planes,
)

logger = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(levelname)s:%(name)s:%(message)s",
    )


def _load_json(path: str) -> Dict[str, Any]:
    with open(path, encoding="utf-8") as fin:
        return json.load(fin)


def _curve_payload(curve: Any) -> Optional[Dict[str, Any]]:
    if curve is None:
        return None
    if isinstance(curve, SpherePlane):
        return {"kind": "sphere_plane", "normal": list(curve.normal), "d": curve.d}
    return curve.to_dict()


def _find_curve(doc: ConstructionDoc, name: str) -> Optional[CurveRef]:
    """Resolve a line or circle by id or by label."""

    for line in doc.lines:
        if name in (line.id, line.label):
            return CurveRef("line", line.id)
    for circle in doc.circles:
        if name in (circle.id, circle.label):
            return CurveRef("circle", circle.id)
    return None


def _find_object(doc: ConstructionDoc, name: str) -> Optional[ObjectRef]:
    for point in doc.points:
        if name in (point.id, point.label):
            return ObjectRef("point", point.id)
    return _find_curve(doc, name)


def _derive_all(mode: GeometryMode, doc: ConstructionDoc) -> List[Dict[str, Any]]:
    rows: List[Dict[str, Any]] = []
    refs = [CurveRef("line", line.id) for line in doc.lines]
    refs.extend(CurveRef("circle", circle.id) for circle in doc.circles)
    for ref in refs:
        curve = derive_curve(mode, doc, ref)
        if curve is None:
            logger.warning("%s has no valid realisation in %s mode", ref.key, mode.value)
        rows.append({"ref": ref.to_dict(), "curve": _curve_payload(curve)})
    return rows


def _intersect(mode: GeometryMode, doc: ConstructionDoc, names: Sequence[str]) -> List[List[float]]:
    refs = []
    for name in names:
        ref = _find_curve(doc, name)
        if ref is None:
            logger.error("Unknown curve %s", name)
            raise SystemExit(1)
        refs.append(ref)
    a = derive_curve(mode, doc, refs[0])
    b = derive_curve(mode, doc, refs[1])
    if a is None or b is None:
        return []
    if mode is GeometryMode.SPHERICAL:
        return [list(p) for p in intersect_sphere_planes(a, b)]
    return [list(p) for p in intersect_curves(a, b)]


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Derive compass-and-straightedge constructions")
    parser.add_argument("path", help="Path to a construction document (JSON)")
    parser.add_argument(
        "--mode",
        default=GeometryMode.EUCLIDEAN.value,
        choices=[mode.value for mode in GeometryMode],
        help="Geometry mode of the document (default: euclidean)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--intersect",
        nargs=2,
        metavar=("A", "B"),
        help="Print the intersection points of two curves given by id or label",
    )
    parser.add_argument(
        "--tool",
        help="Path to a custom tool (JSON) to apply to the document",
    )
    parser.add_argument(
        "--inputs",
        nargs="*",
        default=[],
        help="Objects (id or label) passed to --tool, in order",
    )
    parser.add_argument(
        "--output-path",
        help="Write the document after applying --tool to the given path",
    )
    args = parser.parse_args(argv)

    _configure_logging(args.log_level)

    mode = GeometryMode(args.mode)
    logger.info("Loading %s document from %s", mode.value, args.path)
    try:
        doc = ConstructionDoc.from_dict(_load_json(args.path))
    except (KeyError, TypeError, ValueError) as exc:
        logger.error("Could not load document %s: %s", args.path, exc)
        raise SystemExit(1) from exc
    logger.info(
        "Document has %d point(s), %d line(s), %d circle(s)",
        len(doc.points),
        len(doc.lines),
        len(doc.circles),
    )

    result: Dict[str, Any] = {}
    if args.tool:
        refs = []
        for name in args.inputs:
            ref = _find_object(doc, name)
            if ref is None:
                logger.error("Unknown object %s", name)
                raise SystemExit(1)
            refs.append(ref)
        try:
            tool = CustomTool.from_dict(_load_json(args.tool))
            doc, output = apply_custom_tool(mode, doc, tool, refs)
        except (ToolReplayError, KeyError, TypeError, ValueError) as exc:
            logger.error("Could not apply custom tool %s: %s", args.tool, exc)
            raise SystemExit(1) from exc
        result["output"] = output.to_dict()
        if args.output_path:
            output_path = Path(args.output_path)
            output_path.parent.mkdir(parents=True, exist_ok=True)
            logger.info("Writing document to %s", output_path)
            output_path.write_text(json.dumps(doc.to_dict(), indent=2), encoding="utf-8")

    if args.intersect:
        result["intersection"] = _intersect(mode, doc, args.intersect)
    else:
        result["curves"] = _derive_all(mode, doc)

    print(json.dumps(result, indent=2))


if __name__ == "__main__":
    main(sys.argv[1:])
