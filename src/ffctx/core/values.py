"""Widget type inference and value-object resolution.

FlutterFlow stores most widget properties as small value documents::

    textValue:
      inputValue: Hello            # literal
    colorValue:
      inputValue:
        themeColor: primaryColor   # theme reference
    textValue:
      variable:                    # bound to state, a query, ...
        source: PAGE_STATE

``classify_value`` maps such a document onto a closed set of variants and
``resolve_value`` turns the variant into a display string.
"""

from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass
from typing import Any, Union

_TYPE_PREFIX_RE = re.compile(r"^([A-Z][A-Za-z0-9]*)_")

UNKNOWN_TYPE = "Unknown"
DYNAMIC = "[dynamic]"


def infer_type(key: str) -> str:
    """``Button_uaqbabys`` -> ``Button``; anything not led by an uppercase word -> ``Unknown``."""
    match = _TYPE_PREFIX_RE.match(key or "")
    return match.group(1) if match else UNKNOWN_TYPE


# -- Value variants --


@dataclass(frozen=True)
class Empty:
    pass


@dataclass(frozen=True)
class Scalar:
    text: str


@dataclass(frozen=True)
class SerializedValue:
    text: str


@dataclass(frozen=True)
class ThemeColor:
    name: str


@dataclass(frozen=True)
class RawValue:
    text: str


@dataclass(frozen=True)
class DynamicReference:
    pass


Value = Union[Empty, Scalar, SerializedValue, ThemeColor, RawValue, DynamicReference]


def _scalar_text(raw: Any) -> str | None:
    """Text for str/int/float; None for anything else. Booleans are not surfaced."""
    if isinstance(raw, bool):
        return None
    if isinstance(raw, str):
        return raw
    if isinstance(raw, int):
        return str(raw)
    if isinstance(raw, float):
        if math.isinf(raw):
            return "Infinity" if raw > 0 else "-Infinity"
        return str(int(raw)) if raw.is_integer() else repr(raw)
    return None


def _raw_text(raw: Any) -> str:
    """JSON-style text for passthrough fields: ``true``, ``null``, ``3``, ``s``."""
    text = _scalar_text(raw)
    if text is not None:
        return text
    return json.dumps(raw, default=str)


def _classify_input_value(iv: Any) -> Value:
    text = _scalar_text(iv)
    if text is not None:
        return Scalar(text)
    if isinstance(iv, dict):
        if "serializedValue" in iv:
            return SerializedValue(_raw_text(iv["serializedValue"]))
        if "themeColor" in iv:
            return ThemeColor(_raw_text(iv["themeColor"]))
        if "value" in iv:
            return RawValue(_raw_text(iv["value"]))
    return Empty()


def classify_value(raw: Any) -> Value:
    """Classify a raw value document; ``inputValue`` always beats ``variable``."""
    if raw is None:
        return Empty()
    text = _scalar_text(raw)
    if text is not None:
        return Scalar(text)
    if not isinstance(raw, dict):
        return Empty()
    if raw.get("inputValue") is not None:
        return _classify_input_value(raw["inputValue"])
    if "variable" in raw:
        return DynamicReference()
    return Empty()


def resolve_value(raw: Any) -> str:
    value = classify_value(raw)
    if isinstance(value, Empty):
        return ""
    if isinstance(value, (Scalar, SerializedValue, RawValue)):
        return value.text
    if isinstance(value, ThemeColor):
        return f"[theme:{value.name}]"
    if isinstance(value, DynamicReference):
        return DYNAMIC
    raise TypeError(f"Unhandled value variant: {value!r}")


def resolve_data_type(dt: Any) -> str:
    """Render a dataType document: ``List<String>``, ``DataStruct:User``, ``Enum:Role``, ``Integer``."""
    if not isinstance(dt, dict):
        return "unknown"
    list_type = dt.get("listType")
    if isinstance(list_type, dict) and list_type:
        return f"List<{list_type.get('scalarType') or 'unknown'}>"
    if dt.get("scalarType") == "DataStruct":
        sub = dt.get("subType") or {}
        ident = sub.get("dataStructIdentifier") if isinstance(sub, dict) else None
        name = ident.get("name") if isinstance(ident, dict) else None
        return f"DataStruct:{name}" if name else "DataStruct"
    enum_type = dt.get("enumType")
    if isinstance(enum_type, dict) and enum_type:
        ident = enum_type.get("enumIdentifier")
        name = ident.get("name") if isinstance(ident, dict) else None
        return f"Enum:{name}" if name else "Enum"
    return dt.get("scalarType") or "unknown"
