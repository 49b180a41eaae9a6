"""Tests for the MCP tools, resource, and prompt, called as plain functions."""

from __future__ import annotations

import json

import pytest

from ffctx.core.schema import CacheMeta, ValidationResult
from ffctx.mcp import server
from ffctx.mcp.server import (
    find_component_usages,
    find_page_navigations,
    get_cached_file,
    get_component_summary,
    get_page_by_name,
    get_page_summary,
    get_project_yaml,
    inspect_page,
    list_cached_files,
    list_pages,
    list_project_files,
    list_projects,
    resource_project_cache,
    search_project_files,
    set_client,
    sync_project,
    update_project_yaml,
    validate_yaml,
)
from ffctx.utils.paths import META_FILE
from tests.conftest import HOME_PAGE_YAML, HOME_SUMMARY_TEXT, PROJECT, REFERENCE_FILES, SAMPLE_FILES, FakeSource


@pytest.fixture
def synced(server_store):
    server_store.write_bulk(PROJECT, SAMPLE_FILES)
    server_store.write_meta(PROJECT, CacheMeta(file_count=len(SAMPLE_FILES), sync_method="bulk"))
    return server_store


# -- Sync and page index --


@pytest.mark.anyio
class TestSyncTool:
    async def test_sync(self, server_store):
        result = json.loads(await sync_project(PROJECT))
        assert result["status"] == "synced"
        assert result["method"] == "bulk"
        assert result["synced_files"] == len(SAMPLE_FILES)
        assert server_store.meta(PROJECT) is not None

    async def test_second_sync_is_cached(self, server_store):
        await sync_project(PROJECT)
        result = json.loads(await sync_project(PROJECT))
        assert result["status"] == "already_cached"

    async def test_without_token(self, server_store):
        set_client(None)
        result = json.loads(await sync_project(PROJECT))
        assert result["status"] == "error"
        assert "FLUTTERFLOW_API_TOKEN" in result["error"]


@pytest.mark.anyio
class TestListPagesTool:
    async def test_lists_pages(self, server_store):
        result = json.loads(await list_pages(PROJECT))
        assert result["count"] == 2
        assert [(p["folder"], p["name"]) for p in result["pages"]] == [("Auth", "Login"), ("Main", "Home")]

    async def test_offline_uses_cache(self, synced):
        set_client(None)
        result = json.loads(await list_pages(PROJECT))
        assert [p["scaffold_id"] for p in result["pages"]] == ["Scaffold_login", "Scaffold_home"]


# -- Summaries --


@pytest.mark.anyio
class TestPageSummaryTool:
    async def test_no_cache(self, server_store):
        result = json.loads(await get_page_summary(PROJECT, page_name="Home"))
        assert result["status"] == "error"
        assert "Run sync_project first" in result["error"]

    async def test_requires_name_or_id(self, synced):
        result = json.loads(await get_page_summary(PROJECT))
        assert result["error"] == "Provide either page_name or scaffold_id."

    async def test_not_found_lists_available(self, synced):
        result = json.loads(await get_page_summary(PROJECT, page_name="Settings"))
        assert result["error"].startswith('Page "Settings" not found in cache.')
        assert "  - Home" in result["error"]
        assert "  - Login" in result["error"]

    async def test_by_name(self, synced):
        text = await get_page_summary(PROJECT, page_name="home")
        assert text.startswith(HOME_SUMMARY_TEXT)
        assert "Cache is less than a minute old" in text

    async def test_by_scaffold_id(self, synced):
        text = await get_page_summary(PROJECT, scaffold_id="Scaffold_home")
        assert text.startswith("Home (Scaffold_home)")

    async def test_corrupt_meta_is_reported(self, synced):
        (synced.project_dir(PROJECT) / META_FILE).write_text("{not json")
        result = json.loads(await get_page_summary(PROJECT, page_name="Home"))
        assert result["status"] == "error"
        assert "Corrupt cache metadata" in result["error"]

    async def test_invalid_project_id(self, server_store):
        result = json.loads(await get_page_summary("bad/id", page_name="Home"))
        assert "Invalid project ID" in result["error"]


@pytest.mark.anyio
class TestComponentSummaryTool:
    async def test_by_name(self, synced):
        text = await get_component_summary(PROJECT, component_name="ProductCard")
        assert text.startswith("ProductCard (Container_card)")
        assert "Image cat.png [120x80]" in text

    async def test_not_found(self, synced):
        result = json.loads(await get_component_summary(PROJECT, component_id="Container_nope"))
        assert "Available components:\n  - ProductCard" in result["error"]

    async def test_requires_name_or_id(self, synced):
        result = json.loads(await get_component_summary(PROJECT))
        assert result["status"] == "error"

    async def test_corrupt_meta_is_reported(self, synced):
        (synced.project_dir(PROJECT) / META_FILE).write_text("{not json")
        result = json.loads(await get_component_summary(PROJECT, component_name="ProductCard"))
        assert "Corrupt cache metadata" in result["error"]


# -- Cache access --


class TestCacheTools:
    def test_get_cached_file(self, synced):
        text = get_cached_file(PROJECT, "page/id-Scaffold_login")
        assert text.startswith("name: Login\n")
        assert "Run sync_project with force=true to refresh." in text

    def test_get_cached_file_miss(self, synced):
        result = json.loads(get_cached_file(PROJECT, "page/id-Scaffold_nope"))
        assert result["error"] == f"page/id-Scaffold_nope is not cached for project {PROJECT}"

    def test_list_cached_files(self, synced):
        result = json.loads(list_cached_files(PROJECT, prefix="page/id-Scaffold_login"))
        assert result["keys"] == ["page/id-Scaffold_login"]
        assert result["count"] == 1
        assert result["last_synced_at"] is not None

    def test_list_cached_files_unsynced(self, server_store):
        result = json.loads(list_cached_files(PROJECT))
        assert result == {"project_id": PROJECT, "count": 0, "keys": [], "last_synced_at": None}

    def test_resource(self, synced):
        data = json.loads(resource_project_cache(PROJECT))
        assert data["synced"] is True
        assert data["meta"]["sync_method"] == "bulk"
        assert "folders" in data["keys"]


# -- Cross references and search --


@pytest.fixture
def referenced(synced):
    synced.write_bulk(PROJECT, REFERENCE_FILES)
    return synced


class TestReferenceTools:
    def test_component_usages(self, referenced):
        text = find_component_usages(PROJECT, component_name="productcard")
        assert text.startswith("Component: ProductCard (Container_card)\nFound 2 usage(s):")
        assert "1. Home (Scaffold_home) → Container_cardref" in text
        assert '   Params: title = "Sale", price = [WIDGET_STATE], label = "Hola" (i18n)' in text
        assert "Cache is less than a minute old" in text

    def test_component_usages_not_found(self, referenced):
        result = json.loads(find_component_usages(PROJECT, component_id="Container_nope"))
        assert "Available components:\n  - ProductCard" in result["error"]

    def test_component_usages_requires_name_or_id(self, referenced):
        result = json.loads(find_component_usages(PROJECT))
        assert result["error"] == "Provide either component_name or component_id."

    def test_page_navigations(self, referenced):
        text = find_page_navigations(PROJECT, scaffold_id="Scaffold_home")
        assert text.startswith("Page: Home (Scaffold_home)\nFound 2 navigation(s):")
        assert "1. [DISABLED] [component] ProductCard (Container_card) → ON_LONG_PRESS on Image_pic" in text
        assert "2. Login (Scaffold_login) → ON_TAP on Button_home (no back)\n   Params: userId" in text

    def test_page_navigations_none(self, referenced):
        text = find_page_navigations(PROJECT, page_name="Login")
        assert "No navigations found in cached action files." in text

    def test_page_navigations_no_cache(self, server_store):
        result = json.loads(find_page_navigations(PROJECT, page_name="Home"))
        assert "Run sync_project first" in result["error"]

    def test_corrupt_meta_is_reported(self, referenced):
        (referenced.project_dir(PROJECT) / META_FILE).write_text("[]")
        result = json.loads(find_page_navigations(PROJECT, page_name="Home"))
        assert "Corrupt cache metadata" in result["error"]


class TestSearchTool:
    def test_contains(self, synced):
        text = search_project_files(PROJECT, "scaffold_login")
        assert text.startswith('Found 1 files matching "scaffold_login":\n- page/id-Scaffold_login')

    def test_regex(self, synced):
        text = search_project_files(PROJECT, r"node/id-(Text|Image)_\w+$", mode="regex")
        assert "- page/id-Scaffold_home/page-widget-tree-outline/node/id-Text_title" in text
        assert "- component/id-Container_card/component-widget-tree-outline/node/id-Image_pic" in text

    def test_no_match(self, synced):
        assert search_project_files(PROJECT, "settings").startswith('No files matching "settings" (mode: contains).')

    def test_invalid_mode(self, synced):
        result = json.loads(search_project_files(PROJECT, "x", mode="glob"))
        assert "Unknown search mode" in result["error"]

    def test_truncates(self, synced, monkeypatch):
        monkeypatch.setattr(server, "MAX_SEARCH_RESULTS", 2)
        text = search_project_files(PROJECT, "page/", mode="prefix")
        header, *rows = text.split("\n\n---")[0].splitlines()
        assert header.endswith("(showing first 2):")
        assert len(rows) == 2

    def test_no_cache(self, server_store):
        result = json.loads(search_project_files(PROJECT, "x"))
        assert "Run sync_project first" in result["error"]


# -- Direct API access --


@pytest.mark.anyio
class TestApiTools:
    async def test_page_by_name_cached(self, synced):
        text = await get_page_by_name(PROJECT, "home")
        assert text.startswith("# Home (Scaffold_home) — folder: Main\n# File key: page/id-Scaffold_home\n")
        assert HOME_PAGE_YAML in text

    async def test_page_by_name_fetches_index(self, server_store):
        text = await get_page_by_name(PROJECT, "Login")
        assert text.startswith("# Login (Scaffold_login) — folder: Auth\n")

    async def test_page_by_name_unknown(self, synced):
        result = json.loads(await get_page_by_name(PROJECT, "Settings"))
        assert result["error"].startswith('Page "Settings" not found in cache.')

    async def test_project_yaml_one_file(self, server_store):
        result = json.loads(await get_project_yaml(PROJECT, "folders"))
        assert result == {"project_id": PROJECT, "count": 1, "files": {"folders": SAMPLE_FILES["folders"]}}
        assert server_store.list_keys(PROJECT) == []

    async def test_project_yaml_whole_project(self, server_store):
        result = json.loads(await get_project_yaml(PROJECT))
        assert result["count"] == len(SAMPLE_FILES)

    async def test_project_yaml_error(self, server_store):
        result = json.loads(await get_project_yaml(PROJECT, "page/id-Scaffold_nope"))
        assert "404" in result["error"]

    async def test_list_projects(self, server_store):
        text = await list_projects(project_type="ALL")
        body, tip = text.split("\n\nTip: ")
        assert json.loads(body) == {"value": {"projects": [{"id": PROJECT}]}}
        assert ("list_projects", "ALL") in server._client.calls
        assert "shared" in tip

    async def test_list_projects_without_token(self, server_store):
        set_client(None)
        result = json.loads(await list_projects())
        assert "FLUTTERFLOW_API_TOKEN" in result["error"]

    async def test_list_project_files(self, server_store):
        result = json.loads(await list_project_files(PROJECT))
        assert result["count"] == len(SAMPLE_FILES)
        assert "folders" in result["files"]


# -- Validate and push --


@pytest.mark.anyio
class TestWriteTools:
    async def test_validate_ok(self, server_store):
        result = await validate_yaml(PROJECT, "folders", "rootFolders: []\n")
        assert json.loads(result) == {"valid": True, "errors": []}

    async def test_validate_failure_hints_widget_type(self, server_store):
        server._client.validation = ValidationResult(valid=False, errors=["unknown field"])
        key = "page/id-Scaffold_home/page-widget-tree-outline/node/id-Button_go"
        result = await validate_yaml(PROJECT, key, "x: 1\n")
        body, hint = result.split("\n\nHint: ")
        assert json.loads(body)["errors"] == ["unknown field"]
        assert "existing Button node" in hint

    async def test_validate_failure_generic_hint(self, server_store):
        server._client.validation = ValidationResult(valid=False, errors=["bad"])
        result = await validate_yaml(PROJECT, "folders", "x: 1\n")
        assert "compare with the cached version via get_cached_file" in result

    async def test_validate_failure_hint_for_trigger_file(self, server_store):
        server._client.validation = ValidationResult(valid=False, errors=["bad"])
        key = "page/id-Scaffold_home/page-widget-tree-outline/node/id-Button_go/trigger_actions/id-ON_TAP"
        assert "existing Button node" in await validate_yaml(PROJECT, key, "x: 1\n")

    async def test_validate_failure_lowercase_node_gets_generic_hint(self, server_store):
        server._client.validation = ValidationResult(valid=False, errors=["bad"])
        key = "page/id-Scaffold_home/page-widget-tree-outline/node/id-widget_x"
        assert "compare with the cached version" in await validate_yaml(PROJECT, key, "x: 1\n")

    async def test_update(self, synced):
        result = json.loads(await update_project_yaml(PROJECT, {"page/id-Scaffold_login": "name: SignIn\n"}))
        assert result["status"] == "ok"
        assert result["files"] == ["page/id-Scaffold_login"]
        assert synced.read(PROJECT, "page/id-Scaffold_login") == "name: SignIn\n"

    async def test_update_empty(self, server_store):
        result = json.loads(await update_project_yaml(PROJECT, {}))
        assert result["status"] == "error"


# -- Prompt and lifespan --


class TestPrompt:
    def test_inspect_page(self):
        text = inspect_page(PROJECT, "Home")
        assert f"get_page_summary(project_id='{PROJECT}', page_name='Home')" in text
        assert "validate_yaml" in text


@pytest.mark.anyio
class TestLifespan:
    async def test_closes_client(self, server_store):
        source = FakeSource()
        set_client(source)
        async with server._server_lifespan(server.mcp):
            assert not source.closed
        assert source.closed
