"""Human-friendly output formatter - converts plans and run reports to readable text."""

import os
from typing import Any, List, Optional
from ..execution.report import OperationStatus, RunReport
from ..graph.resource_graph import ResourceGraph
from ..planning.models import ActionType, AttributeChange, Operation, OperationKind, Plan


def _use_ascii(ascii_mode: Optional[bool] = None) -> bool:
    """Resolve whether to use ASCII output (checked at format time)."""
    if ascii_mode is not None:
        return bool(ascii_mode)
    return os.environ.get("GRAPHAPPLY_ASCII", "").lower() in ("1", "true", "yes")


def _box(title: str, width: int = 65, ascii_mode: bool = False) -> List[str]:
    """Return box-drawing header lines."""
    b = {"tl": "+", "tr": "+", "h": "-", "v": "|"} if ascii_mode else {"tl": "┌", "tr": "┐", "h": "─", "v": "│"}
    h = b["h"] * (width - 2)
    return [
        b["tl"] + h + b["tr"],
        f"{b['v']} {title:<{width - 4}} {b['v']}",
        ("+" if ascii_mode else "└") + h + ("+" if ascii_mode else "┘"),
        "",
    ]


def _section(title: str, width: int = 65) -> List[str]:
    """Return section divider."""
    h = "-" * width
    return [h, title.center(width), h]


_SYMBOLS = {
    OperationKind.CREATE: "+",
    OperationKind.UPDATE: "~",
    OperationKind.REPLACE: "-/+",
    OperationKind.DELETE: "-",
    OperationKind.NO_OP: " ",
}

_STATUS_MARKS = {
    OperationStatus.APPLIED: ("✅", "[OK]"),
    OperationStatus.NO_OP: ("·", "[--]"),
    OperationStatus.FAILED: ("❌", "[FAIL]"),
    OperationStatus.SKIPPED: ("⏭️ ", "[SKIP]"),
    OperationStatus.REPLANNED: ("↻", "[REPLAN]"),
}


def _render_value(value: Any) -> str:
    if isinstance(value, str):
        return f'"{value}"'
    if value is None:
        return "null"
    return repr(value)


def _format_change(change: AttributeChange) -> str:
    after = "(known after apply)" if change.after_unknown else _render_value(change.after)
    line = f"      {change.name}: {_render_value(change.before)} -> {after}"
    if change.requires_replace:
        line += "  # forces replacement"
    return line


def _op_label(op: Operation) -> str:
    step = op.op_id.rsplit(":", 1)[1]
    if op.kind == OperationKind.REPLACE:
        return f"{op.node_id} ({step})"
    return op.node_id


def format_plan(plan: Plan, show_no_op: bool = False, ascii_mode: Optional[bool] = None) -> str:
    """
    Render a plan as text.

    Args:
        plan: Plan to render
        show_no_op: Include resources that are already up to date
        ascii_mode: Force ASCII output (defaults to GRAPHAPPLY_ASCII env var)

    Returns:
        Multi-line string
    """
    ascii_mode = _use_ascii(ascii_mode)
    title = "GraphApply Destroy Plan" if plan.destroy else "GraphApply Plan"
    lines = _box(title, ascii_mode=ascii_mode)

    if not plan.has_changes:
        lines.append("No changes. Recorded state matches the desired state.")
        return "\n".join(lines)

    for position, op in enumerate(plan.operations, 1):
        if op.kind == OperationKind.NO_OP and not show_no_op:
            continue
        symbol = _SYMBOLS[op.kind]
        lines.append(f"{position:>3}. {symbol:>3} {op.kind.value:<8} {_op_label(op)}")
        if op.reason:
            lines.append(f"           {op.reason}")
        if op.action != ActionType.DELETE:
            for change in op.diff:
                lines.append(_format_change(change))
        if op.depends_on:
            lines.append(f"           after: {', '.join(op.depends_on)}")

    lines.append("")
    summary = plan.summary()
    lines.append(
        f"Plan: {summary['CREATE']} to create, {summary['UPDATE']} to update, "
        f"{summary['REPLACE']} to replace, {summary['DELETE']} to delete."
    )
    return "\n".join(lines)


def format_report(report: RunReport, ascii_mode: Optional[bool] = None) -> str:
    """Render a run report as text, one line per operation in plan order."""
    ascii_mode = _use_ascii(ascii_mode)
    lines = _box("GraphApply Run Report", ascii_mode=ascii_mode)

    for result in report.results:
        mark = _STATUS_MARKS[result.status][1 if ascii_mode else 0]
        line = f"{mark} {result.op_id:<40} {result.status.value}"
        if result.attempts > 1:
            line += f" (attempts: {result.attempts})"
        lines.append(line)
        if result.error:
            lines.append(f"      {result.error}")

    lines.append("")
    counts = report.counts()
    lines.append(
        f"Applied: {counts['APPLIED']}, unchanged: {counts['NO_OP']}, failed: {counts['FAILED']}, "
        f"skipped: {counts['SKIPPED']}, replanned: {counts['REPLANNED']}"
    )
    if report.cancelled:
        lines.append("Run was cancelled before all operations were dispatched.")
    lines.append("Result: SUCCESS" if report.success else "Result: FAILED")
    return "\n".join(lines)


def format_graph(graph: ResourceGraph) -> str:
    """Render the dependency order, each node followed by what it depends on."""
    lines = _section("Dependency order")
    for position, node in enumerate(graph.topological_order(), 1):
        deps = graph.dependencies_of(node.node_id)
        suffix = f"  <- {', '.join(deps)}" if deps else ""
        lines.append(f"{position:>3}. {node.node_id}{suffix}")
    return "\n".join(lines)
