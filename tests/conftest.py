"""Shared fixtures: temp cache stores, an in-memory project source, sample project YAML."""

from __future__ import annotations

import base64
import io
import zipfile
from pathlib import Path

import pytest

from ffctx.core.cache import CacheStore
from ffctx.core.schema import CacheMeta, ValidationResult
from ffctx.sources.flutterflow import FlutterFlowAPIError

PROJECT = "proj-1"

HOME_OUTLINE = "page/id-Scaffold_home/page-widget-tree-outline"
CARD_OUTLINE = "component/id-Container_card/component-widget-tree-outline"

FOLDERS_YAML = """\
rootFolders:
  - key: fa
    name: Auth
  - key: fm
    name: " Main "
widgetClassKeyToFolderKey:
  Scaffold_home: fm
  Scaffold_login: fa
  Container_card: fm
"""

HOME_PAGE_YAML = """\
name: Home
params:
  p1:
    identifier:
      name: userId
      key: p1
    dataType:
      scalarType: String
    defaultValue:
      serializedValue: guest
classModel:
  stateFields:
    - parameter:
        identifier:
          name: counter
        dataType:
          scalarType: Integer
      serializedDefaultValue:
        - "0"
"""

HOME_OUTLINE_YAML = """\
node:
  key: Scaffold_home
  appBar:
    key: AppBar_top
  body:
    key: Column_main
    children:
      - key: Text_title
      - key: Button_go
      - key: Container_cardref
"""

# Every file of a small but complete project, keyed the way the API names them.
SAMPLE_FILES = {
    "folders": FOLDERS_YAML,
    "page/id-Scaffold_home": HOME_PAGE_YAML,
    "page/id-Scaffold_login": "name: Login\n",
    HOME_OUTLINE: HOME_OUTLINE_YAML,
    f"{HOME_OUTLINE}/node/id-Scaffold_home": "key: Scaffold_home\n",
    f"{HOME_OUTLINE}/node/id-Scaffold_home/trigger_actions/id-ON_INIT_STATE": (
        "trigger:\n  triggerType: ON_INIT_STATE\nrootAction:\n  action:\n    key: w1\n"
    ),
    f"{HOME_OUTLINE}/node/id-Scaffold_home/trigger_actions/id-ON_INIT_STATE/action/id-w1": (
        "waitAction:\n  durationMillisValue:\n    inputValue: 500\n"
    ),
    f"{HOME_OUTLINE}/node/id-AppBar_top": "key: AppBar_top\n",
    f"{HOME_OUTLINE}/node/id-Column_main": "key: Column_main\n",
    f"{HOME_OUTLINE}/node/id-Text_title": (
        "key: Text_title\ntype: Text\nprops:\n  text:\n    textValue:\n      inputValue: Welcome\n"
    ),
    f"{HOME_OUTLINE}/node/id-Button_go": (
        "key: Button_go\ntype: Button\nname: goButton\n"
        "props:\n  button:\n    text:\n      textValue:\n        inputValue: Go\n"
    ),
    f"{HOME_OUTLINE}/node/id-Button_go/trigger_actions/id-ON_TAP": (
        "trigger:\n  triggerType: ON_TAP\n"
        "rootAction:\n  action:\n    key: nav1\n  followUpAction:\n    action:\n      key: cust1\n"
    ),
    f"{HOME_OUTLINE}/node/id-Button_go/trigger_actions/id-ON_TAP/action/id-nav1": (
        "navigate:\n  isNavigateBack: true\n"
    ),
    f"{HOME_OUTLINE}/node/id-Button_go/trigger_actions/id-ON_TAP/action/id-cust1": (
        "customAction:\n  customActionIdentifier:\n    name: checkout\n"
    ),
    f"{HOME_OUTLINE}/node/id-Container_cardref": (
        "key: Container_cardref\ncomponentClassKeyRef:\n  key: Container_card\n"
    ),
    "component/id-Container_card": "name: ProductCard\ndescription: Shows a product\n",
    CARD_OUTLINE: "node:\n  key: Container_card\n  children:\n    - key: Image_pic\n",
    f"{CARD_OUTLINE}/node/id-Container_card": "key: Container_card\n",
    f"{CARD_OUTLINE}/node/id-Image_pic": (
        "key: Image_pic\ntype: Image\nprops:\n  image:\n"
        "    pathValue:\n      inputValue: https://example.com/img/cat.png\n"
        "    dimensions:\n"
        "      width:\n        pixelsValue:\n          inputValue: 120\n"
        "      height:\n        pixelsValue:\n          inputValue: 80\n"
    ),
}

LOGIN_OUTLINE = "page/id-Scaffold_login/page-widget-tree-outline"

# Cross-reference fixtures: Login embeds ProductCard with parameters, and
# ProductCard and Login both link to Home.
REFERENCE_FILES = {
    f"{LOGIN_OUTLINE}/node/id-Container_promo": """\
key: Container_promo
componentClassKeyRef:
  key: Container_card
parameterValues:
  pt1:
    paramIdentifier:
      name: title
      key: pt1
    inputValue:
      serializedValue: Sale
  pt2:
    paramIdentifier: price
    variable:
      source: WIDGET_STATE
  pt3:
    paramIdentifier: label
    variable:
      source: INTERNATIONALIZATION
      functionCall:
        values:
          - inputValue:
              serializedValue: Hola
""",
    f"{LOGIN_OUTLINE}/node/id-Button_home/trigger_actions/id-ON_TAP/action/id-n1": """\
navigate:
  pageNodeKeyRef:
    key: Scaffold_home
  allowBack: false
  passedParameters:
    userId:
      variable:
        source: WIDGET_STATE
    widgetClassNodeKeyRef:
      key: Scaffold_home
""",
    f"{CARD_OUTLINE}/node/id-Image_pic/trigger_actions/id-ON_LONG_PRESS/action/id-n2": """\
disableAction:
  navigate:
    pageNodeKeyRef:
      key: Scaffold_home
""",
}

HOME_SUMMARY_TEXT = """\
Home (Scaffold_home) — folder: Main
Params: userId (String, default: guest)
State: counter (Integer, default: 0)

ON_INIT_STATE → [wait: 500ms]

Widget Tree:
├── [body] Column
│   ├── Text "Welcome"
│   ├── Button (goButton) "Go" → ON_TAP → [navigate: back, customAction: checkout]
│   └── [ProductCard] (Container_card)
└── [appBar] AppBar"""


def make_envelope(files: dict[str, str], snake_case: bool = False) -> dict:
    """Zip files as ``<key>.yaml`` entries and wrap them like the projectYamls response."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as zf:
        for key, content in files.items():
            zf.writestr(f"{key}.yaml", content)
    field = "project_yaml_bytes" if snake_case else "projectYamlBytes"
    return {"value": {field: base64.b64encode(buf.getvalue()).decode("ascii")}}


class FakeSource:
    """In-memory ProjectSource.

    ``bulk=False`` makes the whole-project export fail; keys in ``fail`` raise
    on single-file fetches; ``with_children`` also returns sub-files of a
    requested key, like the real export does.
    """

    def __init__(
        self,
        files: dict[str, str] | None = None,
        bulk: bool = True,
        fail: tuple[str, ...] = (),
        with_children: bool = False,
    ) -> None:
        self.files = dict(SAMPLE_FILES if files is None else files)
        self.bulk = bulk
        self.fail = set(fail)
        self.with_children = with_children
        self.calls: list[tuple[str, str | None]] = []
        self.updates: list[dict[str, str]] = []
        self.validation = ValidationResult(valid=True)
        self.closed = False

    async def list_projects(self, project_type: str | None = None):
        self.calls.append(("list_projects", project_type))
        return {"value": {"projects": [{"id": PROJECT}]}}

    async def list_files(self, project_id: str) -> list[str]:
        self.calls.append(("list_files", None))
        return list(self.files)

    async def get_files(self, project_id: str, file_key: str | None = None):
        self.calls.append(("get_files", file_key))
        if file_key is None:
            if not self.bulk:
                raise FlutterFlowAPIError("FlutterFlow API error 500: export failed", status_code=500)
            return make_envelope(self.files)
        if file_key in self.fail or file_key not in self.files:
            raise FlutterFlowAPIError(f"FlutterFlow API error 404: {file_key}", status_code=404)
        selected = {file_key: self.files[file_key]}
        if self.with_children:
            selected.update({k: v for k, v in self.files.items() if k.startswith(file_key + "/")})
        return make_envelope(selected)

    async def validate(self, project_id: str, file_key: str, content: str) -> ValidationResult:
        self.calls.append(("validate", file_key))
        return self.validation

    async def update(self, project_id: str, file_key_to_content: dict[str, str]):
        self.updates.append(dict(file_key_to_content))
        return {"success": True}

    async def aclose(self) -> None:
        self.closed = True

    def fetched(self) -> list[str | None]:
        return [key for name, key in self.calls if name == "get_files"]


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def store(tmp_path: Path) -> CacheStore:
    """Empty cache rooted in a temp directory."""
    return CacheStore(tmp_path / "cache")


@pytest.fixture
def synced_store(store: CacheStore) -> CacheStore:
    """Cache holding every sample file plus sync metadata."""
    store.write_bulk(PROJECT, SAMPLE_FILES)
    store.write_meta(PROJECT, CacheMeta(file_count=len(SAMPLE_FILES), sync_method="bulk"))
    return store


@pytest.fixture
def source() -> FakeSource:
    return FakeSource()
