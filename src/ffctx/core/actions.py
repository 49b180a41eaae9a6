"""Summarize a node's trigger_actions chains.

A trigger file (``.../node/id-Button_x/trigger_actions/id-ON_TAP``) holds a
``rootAction`` chain that links action keys through ``followUpAction``,
``conditionActions`` and ``parallelActions``. Each action key has its own
file under ``.../id-ON_TAP/action/id-<key>``.
"""

from __future__ import annotations

import logging
from typing import Any

import yaml

from ffctx.core.cache import CacheStore
from ffctx.core.schema import ActionSummary, TriggerSummary

logger = logging.getLogger(__name__)

TERMINATE = "terminate"

# Action document keys that map directly onto a kind with no detail.
_SIMPLE_KINDS = {
    "alertDialog": "alertDialog",
    "bottomSheet": "bottomSheet",
    "auth": "auth",
    "rebuild": "rebuild",
    "scrollTo": "scrollTo",
    "copyToClipboard": "copyToClipboard",
    "share": "share",
    "hapticFeedback": "haptic",
    "terminate": TERMINATE,
}

_POSTGRES_OPS = ("insert", "update", "query", "delete")


def collect_action_keys(node: Any) -> list[str]:
    """Flatten an action chain into action keys, in execution order."""
    if not isinstance(node, dict):
        return []
    keys: list[str] = []

    action = node.get("action")
    if isinstance(action, dict) and action.get("key"):
        keys.append(str(action["key"]))

    cond = node.get("conditionActions")
    if isinstance(cond, dict):
        for branch in cond.get("trueActions") or []:
            if isinstance(branch, dict):
                keys.extend(collect_action_keys(branch.get("trueAction")))
        false_action = cond.get("falseAction")
        if isinstance(false_action, dict) and TERMINATE not in false_action:
            keys.extend(collect_action_keys(false_action))
        keys.extend(collect_action_keys(cond.get("followUpAction")))

    parallel = node.get("parallelActions")
    if isinstance(parallel, dict):
        for branch in parallel.get("actions") or []:
            keys.extend(collect_action_keys(branch))

    keys.extend(collect_action_keys(node.get("followUpAction")))
    return keys


def _dig(obj: Any, *path: str) -> Any:
    for part in path:
        if not isinstance(obj, dict):
            return None
        obj = obj.get(part)
    return obj


def _unique(keys: list[str]) -> list[str]:
    return list(dict.fromkeys(keys))


def classify_action(doc: dict) -> ActionSummary:
    """Map an action document onto a coarse kind plus a short detail."""
    if "navigate" in doc:
        if _dig(doc, "navigate", "isNavigateBack"):
            return ActionSummary(type="navigate", detail="back")
        return ActionSummary(type="navigate", detail="to page")

    if "customAction" in doc:
        ident = _dig(doc, "customAction", "customActionIdentifier")
        detail = doc.get("outputVariableName") or _dig(ident, "name") or _dig(ident, "key") or "unknown"
        return ActionSummary(type="customAction", detail=str(detail))

    if "database" in doc:
        pg = _dig(doc, "database", "postgresAction")
        if isinstance(pg, dict):
            table = _dig(pg, "tableIdentifier", "name") or "table"
            op = next((o for o in _POSTGRES_OPS if o in pg), "op")
            return ActionSummary(type="database", detail=f"{op} {table}")
        if _dig(doc, "database", "firestoreAction") is not None:
            return ActionSummary(type="database", detail="firestore")
        return ActionSummary(type="database")

    if "localStateUpdate" in doc:
        if _dig(doc, "localStateUpdate", "stateVariableType") == "APP_STATE":
            return ActionSummary(type="updateAppState")
        updates = _dig(doc, "localStateUpdate", "updates")
        first = updates[0] if isinstance(updates, list) and updates and isinstance(updates[0], dict) else {}
        if "increment" in first:
            return ActionSummary(type="updateState", detail="increment")
        if "dataStructUpdate" in first:
            return ActionSummary(type="updateState", detail="struct")
        return ActionSummary(type="updateState")

    if "waitAction" in doc:
        ms = _dig(doc, "waitAction", "durationMillisValue", "inputValue")
        return ActionSummary(type="wait", detail=f"{ms}ms" if ms else "")

    if "revenueCat" in doc:
        rc = doc.get("revenueCat")
        rc = rc if isinstance(rc, dict) else {}
        for op in ("purchase", "restore"):
            if op in rc:
                return ActionSummary(type="revenueCat", detail=op)
        return ActionSummary(type="revenueCat")

    for key, kind in _SIMPLE_KINDS.items():
        if key in doc:
            return ActionSummary(type=kind)

    rest = [k for k in doc if k not in ("key", "outputVariableName")]
    return ActionSummary(type=str(rest[0]) if rest else "unknown")


def summarize_triggers(store: CacheStore, project_id: str, node_file_key: str) -> list[TriggerSummary]:
    """Read cached trigger files under a node and summarize each one.

    Triggers whose chain resolves to no actions are left out.
    """
    trigger_prefix = f"{node_file_key}/trigger_actions/id-"
    trigger_keys = [
        k for k in store.list_keys(project_id, trigger_prefix)
        if "/" not in k[len(trigger_prefix):]
    ]

    results: list[TriggerSummary] = []
    for trigger_key in trigger_keys:
        content = store.read(project_id, trigger_key)
        if not content:
            continue
        try:
            doc = yaml.safe_load(content)
        except yaml.YAMLError:
            logger.warning("Skipping unparseable trigger file %s", trigger_key)
            continue
        if not isinstance(doc, dict) or not isinstance(doc.get("rootAction"), dict):
            continue

        trigger_type = _dig(doc, "trigger", "triggerType") or "UNKNOWN"
        actions: list[ActionSummary] = []
        for action_key in _unique(collect_action_keys(doc["rootAction"])):
            action_content = store.read(project_id, f"{trigger_key}/action/id-{action_key}")
            if not action_content:
                continue
            try:
                action_doc = yaml.safe_load(action_content)
            except yaml.YAMLError:
                actions.append(ActionSummary(type="unknown", detail=action_key))
                continue
            if not isinstance(action_doc, dict):
                actions.append(ActionSummary(type="unknown", detail=action_key))
                continue
            summary = classify_action(action_doc)
            if summary.type != TERMINATE:
                actions.append(summary)

        if actions:
            results.append(TriggerSummary(trigger=str(trigger_type), actions=actions))
    return results
