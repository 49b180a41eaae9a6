"""Render page/component summaries as compact text with box-drawing connectors."""

from __future__ import annotations

from ffctx.core.outline import CHILDREN_SLOT, ROOT_SLOT
from ffctx.core.schema import (
    ActionSummary,
    ComponentSummary,
    ComponentUsage,
    NavigationRef,
    PageSummary,
    ParamInfo,
    StateFieldInfo,
    SummaryNode,
    TriggerSummary,
)


def format_action(action: ActionSummary) -> str:
    return f"{action.type}: {action.detail}" if action.detail else action.type


def format_trigger(trigger: TriggerSummary) -> str:
    """``ON_TAP → [navigate: back, customAction: checkout]``"""
    return f"{trigger.trigger} → [{', '.join(format_action(a) for a in trigger.actions)}]"


def _fields(items: list[ParamInfo] | list[StateFieldInfo]) -> str:
    parts = []
    for item in items:
        default = f", default: {item.default_value}" if item.default_value else ""
        parts.append(f"{item.name} ({item.data_type}{default})")
    return ", ".join(parts)


def node_label(node: SummaryNode) -> str:
    parts = []
    if node.slot not in (CHILDREN_SLOT, ROOT_SLOT):
        parts.append(f"[{node.slot}] ")
    if node.component_ref:
        parts.append(f"[{node.component_ref}]")
        if node.component_id:
            parts.append(f" ({node.component_id})")
    else:
        parts.append(node.type)
    if node.name:
        parts.append(f" ({node.name})")
    if node.detail:
        parts.append(f" {node.detail}")
    if node.error:
        parts.append(f" [error: {node.error}]")
    return "".join(parts)


def _render(node: SummaryNode, prefix: str, is_last: bool, lines: list[str]) -> None:
    connector = "└── " if is_last else "├── "
    triggers = ""
    if node.triggers:
        triggers = " → " + "; ".join(format_trigger(t) for t in node.triggers)
    lines.append(f"{prefix}{connector}{node_label(node)}{triggers}")

    child_prefix = prefix + ("    " if is_last else "│   ")
    for i, child in enumerate(node.children):
        _render(child, child_prefix, i == len(node.children) - 1, lines)


def _tree_section(tree: SummaryNode, lines: list[str]) -> None:
    # Root-level triggers get their own lines; the root itself is not drawn.
    if tree.triggers:
        lines.append("")
        lines.extend(format_trigger(t) for t in tree.triggers)
    if tree.error:
        lines.append(f"[error: {tree.error}]")
    lines.append("")
    lines.append("Widget Tree:")
    if not tree.children:
        lines.append("(empty)")
    for i, child in enumerate(tree.children):
        _render(child, "", i == len(tree.children) - 1, lines)


def format_page_summary(summary: PageSummary) -> str:
    meta = summary.meta
    lines = [f"{meta.page_name} ({meta.scaffold_id}) — folder: {meta.folder}"]
    if meta.params:
        lines.append(f"Params: {_fields(meta.params)}")
    if meta.state_fields:
        lines.append(f"State: {_fields(meta.state_fields)}")
    _tree_section(summary.tree, lines)
    return "\n".join(lines)


def format_component_summary(summary: ComponentSummary) -> str:
    meta = summary.meta
    lines = [f"{meta.component_name} ({meta.container_id})"]
    if meta.description:
        lines.append(f"Description: {meta.description}")
    if meta.params:
        lines.append(f"Params: {_fields(meta.params)}")
    _tree_section(summary.tree, lines)
    return "\n".join(lines)


# -- Cross references --


def _parent_label(parent_type: str, parent_name: str, parent_id: str) -> str:
    prefix = "[component] " if parent_type == "component" else ""
    return f"{prefix}{parent_name} ({parent_id})"


def format_component_usages(name: str, container_id: str, usages: list[ComponentUsage]) -> str:
    lines = [f"Component: {name} ({container_id})"]
    if not usages:
        lines.append("No usages found in cached files.")
        return "\n".join(lines)
    lines += [f"Found {len(usages)} usage(s):", ""]
    for i, usage in enumerate(usages, 1):
        parent = _parent_label(usage.parent_type, usage.parent_name, usage.parent_id)
        lines.append(f"{i}. {parent} → {usage.widget_key}")
        if usage.params:
            lines.append("   Params: " + ", ".join(f"{p.name} = {p.value}" for p in usage.params))
    return "\n".join(lines)


def format_page_navigations(name: str, scaffold_id: str, refs: list[NavigationRef]) -> str:
    lines = [f"Page: {name} ({scaffold_id})"]
    if not refs:
        lines.append("No navigations found in cached action files.")
        return "\n".join(lines)
    lines += [f"Found {len(refs)} navigation(s):", ""]
    for i, ref in enumerate(refs, 1):
        flag = "[DISABLED] " if ref.disabled else ""
        back = "" if ref.allow_back else " (no back)"
        parent = _parent_label(ref.parent_type, ref.parent_name, ref.parent_id)
        lines.append(f"{i}. {flag}{parent} → {ref.trigger} on {ref.widget_key}{back}")
        if ref.passed_params:
            lines.append("   Params: " + ", ".join(ref.passed_params))
    return "\n".join(lines)
