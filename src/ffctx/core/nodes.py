"""Extract a one-line detail (text, label, image, hint) from a node's own file."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable

from ffctx.core.values import DYNAMIC, infer_type, resolve_value

_NAME_LINE_RE = re.compile(r"^name:\s*(.+)$", re.MULTILINE)


@dataclass
class NodeInfo:
    type: str
    name: str = ""
    detail: str = ""
    component_id: str | None = None


def _get(obj: Any, *path: str) -> Any:
    for part in path:
        if not isinstance(obj, dict):
            return None
        obj = obj.get(part)
    return obj


def _quoted(raw: Any) -> str:
    val = resolve_value(raw)
    return f'"{val}"' if val else ""


def _text(props: dict) -> str:
    return _quoted(_get(props, "text", "textValue"))


def _button(props: dict) -> str:
    return _quoted(_get(props, "button", "text", "textValue"))


def _image(props: dict) -> str:
    image = props.get("image")
    if not isinstance(image, dict):
        return ""
    parts = []
    path_value = image.get("pathValue")
    if path_value:
        path = resolve_value(path_value)
        if path == DYNAMIC:
            parts.append(DYNAMIC)
        elif path:
            parts.append(path.rsplit("/", 1)[-1] or path)

    dims = image.get("dimensions")
    if isinstance(dims, dict):
        width = _get(dims, "width", "pixelsValue")
        height = _get(dims, "height", "pixelsValue")
        w = resolve_value(width) if width else ""
        h = resolve_value(height) if height else ""
        if w and h and "Infinity" not in (w, h):
            parts.append(f"[{w}x{h}]")
    return " ".join(parts)


def _icon(props: dict) -> str:
    name = _get(props, "icon", "iconDataValue", "inputValue", "name")
    return str(name) if name else ""


def _text_field(props: dict) -> str:
    val = resolve_value(_get(props, "textField", "inputDecoration", "hintText", "textValue"))
    return f'hint: "{val}"' if val else ""


def _checkbox(props: dict) -> str:
    widget = props.get("checkbox") or props.get("toggle") or props.get("switchWidget")
    return resolve_value(_get(widget, "labelValue"))


_EXTRACTORS: dict[str, Callable[[dict], str]] = {
    "Text": _text,
    "RichText": _text,
    "AutoSizeText": _text,
    "Button": _button,
    "IconButton": _button,
    "FFButtonWidget": _button,
    "Image": _image,
    "CachedNetworkImage": _image,
    "Icon": _icon,
    "TextField": _text_field,
    "TextFormField": _text_field,
    "Checkbox": _checkbox,
    "CheckboxListTile": _checkbox,
    "Switch": _checkbox,
    "ToggleIcon": _checkbox,
}


def extract_detail(widget_type: str, props: Any) -> str:
    """Type-specific detail; empty for widget types without a useful one."""
    extractor = _EXTRACTORS.get(widget_type)
    if extractor is None or not isinstance(props, dict):
        return ""
    return extractor(props)


def extract_node_info(doc: Any, node_key: str) -> NodeInfo:
    """Build NodeInfo from a parsed node document (``None`` if the file is absent)."""
    if not isinstance(doc, dict):
        return NodeInfo(type=infer_type(node_key))
    widget_type = doc.get("type") or infer_type(node_key)
    name = doc.get("name") or ""
    ref = _get(doc, "componentClassKeyRef", "key")
    return NodeInfo(
        type=str(widget_type),
        name=str(name),
        detail=extract_detail(str(widget_type), doc.get("props")),
        component_id=ref if isinstance(ref, str) and ref else None,
    )


def document_name(content: str | None) -> str:
    """Top-level ``name:`` of a page or component document, without a full parse."""
    if not content:
        return ""
    match = _NAME_LINE_RE.search(content)
    return match.group(1).strip().strip("\"'") if match else ""
