"""Pydantic v2 models for cache metadata, outlines, and summaries."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, Field


def _now() -> datetime:
    return datetime.now(timezone.utc)


# -- Cache --


class CacheMeta(BaseModel):
    last_synced_at: datetime = Field(default_factory=_now)
    file_count: Optional[int] = None
    sync_method: Literal["bulk", "batched", "partial"] = "bulk"


class SyncResult(BaseModel):
    status: Literal["synced", "already_cached", "error"]
    synced_files: int = 0
    failed: int = 0
    method: str = ""
    cached_at: Optional[datetime] = None
    message: str = ""


# -- Remote API --


class ValidationResult(BaseModel):
    valid: bool
    errors: list[str] = Field(default_factory=list)


# -- Widget tree --


class OutlineNode(BaseModel):
    """Structural skeleton node from a widget-tree-outline document."""

    key: str
    slot: str
    children: list[OutlineNode] = Field(default_factory=list)


class ActionSummary(BaseModel):
    type: str  # e.g. "navigate", "customAction", "updateState"
    detail: str = ""  # e.g. "back", "insert users", "500ms"


class TriggerSummary(BaseModel):
    trigger: str  # e.g. "ON_TAP", "ON_INIT_STATE"
    actions: list[ActionSummary] = Field(default_factory=list)


class SummaryNode(BaseModel):
    key: str
    type: str
    name: str = ""
    slot: str
    detail: str = ""
    component_ref: Optional[str] = None  # display name of a component instance
    component_id: Optional[str] = None  # e.g. "Container_ur4ml9qw"
    triggers: list[TriggerSummary] = Field(default_factory=list)
    children: list[SummaryNode] = Field(default_factory=list)
    error: Optional[str] = None  # set when this node's own file could not be loaded

    @property
    def degraded(self) -> bool:
        return self.error is not None


# -- Page / component metadata --


class ParamInfo(BaseModel):
    name: str
    data_type: str
    default_value: Optional[str] = None


class StateFieldInfo(BaseModel):
    name: str
    data_type: str
    default_value: Optional[str] = None


class PageMeta(BaseModel):
    page_name: str
    scaffold_id: str
    folder: str
    params: list[ParamInfo] = Field(default_factory=list)
    state_fields: list[StateFieldInfo] = Field(default_factory=list)


class ComponentMeta(BaseModel):
    component_name: str
    container_id: str
    description: str = ""
    params: list[ParamInfo] = Field(default_factory=list)


class PageSummary(BaseModel):
    meta: PageMeta
    tree: SummaryNode


class ComponentSummary(BaseModel):
    meta: ComponentMeta
    tree: SummaryNode


class PageInfo(BaseModel):
    """One row of the page index."""

    scaffold_id: str
    name: str
    folder: str
    file_key: str


# -- Cross references --


class ParamPass(BaseModel):
    name: str
    value: str


class ComponentUsage(BaseModel):
    """A widget that instantiates a component."""

    parent_type: Literal["page", "component"]
    parent_name: str
    parent_id: str
    widget_key: str
    params: list[ParamPass] = Field(default_factory=list)


class NavigationRef(BaseModel):
    """An action chain that navigates to a page."""

    parent_type: Literal["page", "component"]
    parent_name: str
    parent_id: str
    widget_key: str
    trigger: str
    disabled: bool = False
    allow_back: bool = True
    passed_params: list[str] = Field(default_factory=list)
