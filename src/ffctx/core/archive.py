"""Decode the base64 zip envelope returned by the projectYamls endpoint.

The response shape is ``{"value": {"projectYamlBytes": "<base64>"}}``; older
responses use ``project_yaml_bytes``. The archive holds one UTF-8 YAML
document per project file.
"""

from __future__ import annotations

import base64
import binascii
import io
import logging
import zipfile
import zlib
from typing import Any

logger = logging.getLogger(__name__)

_BYTES_FIELDS = ("projectYamlBytes", "project_yaml_bytes")
_YAML_SUFFIX = ".yaml"


class DecodeError(Exception):
    """Raised when an archive envelope is missing or malformed."""


def _extract_b64(envelope: Any) -> str:
    value = envelope.get("value") if isinstance(envelope, dict) else None
    if isinstance(value, dict):
        for field in _BYTES_FIELDS:
            b64 = value.get(field)
            if isinstance(b64, str) and b64:
                return b64
    raise DecodeError("Unexpected API response: missing value.projectYamlBytes")


def decode_archive(envelope: Any) -> dict[str, str]:
    """Unzip an archive envelope into a ``{entry name: text}`` mapping.

    Directory entries are skipped. An entry that cannot be decompressed or
    decoded is logged and skipped, so the rest of the archive stays usable.
    """
    b64 = _extract_b64(envelope)
    try:
        # payloads may arrive line-wrapped
        raw = base64.b64decode("".join(b64.split()), validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"Archive payload is not valid base64: {e}") from e

    try:
        archive = zipfile.ZipFile(io.BytesIO(raw))
    except zipfile.BadZipFile as e:
        raise DecodeError(f"Archive payload is not a zip file: {e}") from e

    result: dict[str, str] = {}
    with archive:
        for info in archive.infolist():
            if info.is_dir():
                continue
            try:
                result[info.filename] = archive.read(info).decode("utf-8")
            except (zipfile.BadZipFile, zlib.error, UnicodeDecodeError, RuntimeError, OSError) as e:
                logger.warning("Failed to decompress archive entry %s: %s", info.filename, e)
    return result


def strip_yaml_suffix(name: str) -> str:
    """``folders.yaml`` -> ``folders``; names without the suffix pass through."""
    if name.endswith(_YAML_SUFFIX):
        return name[: -len(_YAML_SUFFIX)]
    return name


def normalize_entries(entries: dict[str, str]) -> dict[str, str]:
    """Map archive entry names to cache file keys."""
    return {strip_yaml_suffix(name): content for name, content in entries.items()}
