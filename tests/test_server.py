"""
Glean MCP 서버 종합 테스트

FastMCP 에 등록된 도구 함수를 직접 호출한다. Glean REST API 는 respx 로 흉내 낸다.
"""
from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest
from mcp.server.fastmcp import FastMCP

from conftest import BASE_URL
from glean_mcp.auth import Tokens, save_tokens
from glean_mcp.auth.errors import AuthError
from glean_mcp.chat_buffer import ChatResponseBuffer
from glean_mcp.client import GleanAPIError, api_base_url
from glean_mcp.config import TokenConfig
from glean_mcp.server import SERVER_NAME, build_server
from glean_mcp.tools import (
    build_chat_request,
    build_people_request,
    build_search_request,
    register_tools,
)

API = "https://acme-be.glean.com/rest/api/v1/"


def tool_fn(mcp_instance, name):
    """FastMCP에서 등록된 tool의 내부 함수를 찾아 반환."""
    tool = mcp_instance._tool_manager._tools.get(name)
    return tool.fn if tool else None


def sent_json(route, index=0):
    return json.loads(route.calls[index].request.content)


# =============================================================================
# 1. 서버 구성
# =============================================================================

class TestServerStartup:
    async def test_build_server_registers_tools(self, make_ctx, token_config):
        mcp = build_server(make_ctx(token_config))
        assert mcp.name == SERVER_NAME
        assert set(mcp._tool_manager._tools) == {
            "company_search",
            "chat",
            "people_profile_search",
            "read_documents",
        }

    @pytest.mark.parametrize(
        "base_url",
        ["https://acme-be.glean.com/", "https://acme-be.glean.com", "https://acme-be.glean.com/rest/api/v1/"],
    )
    def test_api_base_url(self, base_url):
        assert api_base_url(base_url) == API


# =============================================================================
# 2. 요청 변환
# =============================================================================

class TestRequestBuilders:
    def test_search_request(self):
        assert build_search_request("q", ["jira"], 5, "c1") == {
            "query": "q",
            "pageSize": 5,
            "cursor": "c1",
            "requestOptions": {"datasourcesFilter": ["jira"], "facetBucketSize": 10},
        }

    def test_chat_request_puts_context_first(self):
        request = build_chat_request("now", ["before"])
        assert [m["fragments"][0]["text"] for m in request["messages"]] == ["before", "now"]
        assert request["messages"][0]["author"] == "USER"

    def test_people_request_filters(self):
        request = build_people_request(filters={"department": "Platform"})
        assert request == {
            "entityType": "PEOPLE",
            "pageSize": 10,
            "filter": [
                {"fieldName": "department", "values": [{"relationType": "EQUALS", "value": "Platform"}]}
            ],
        }


# =============================================================================
# 3. Tool 함수 (토큰 인증)
# =============================================================================

class TestTools:
    @pytest.fixture
    def mcp_instance(self, make_ctx):
        mcp = FastMCP("Test")
        config = TokenConfig(base_url=BASE_URL, token="glean-token", act_as="jane@acme.com")
        register_tools(mcp, make_ctx(config), buffer=ChatResponseBuffer(max_tokens=20))
        return mcp

    async def test_company_search(self, mcp_instance, http_mock):
        route = http_mock.post(API + "search").mock(
            return_value=httpx.Response(
                200, json={"results": [{"title": "Runbook"}], "metadata": {"searchedQuery": "deploy"}}
            )
        )

        result = await tool_fn(mcp_instance, "company_search")(query="deploy", datasources=["confluence"])

        assert 'Search results for "deploy"' in result
        assert "[1] Runbook" in result
        request = route.calls[0].request
        assert request.headers["Authorization"] == "Bearer glean-token"
        assert request.headers["X-Glean-Act-As"] == "jane@acme.com"
        assert sent_json(route)["requestOptions"]["datasourcesFilter"] == ["confluence"]

    async def test_company_search_validation(self, mcp_instance, http_mock):
        fn = tool_fn(mcp_instance, "company_search")
        with pytest.raises(ValueError):
            await fn(query="  ")
        with pytest.raises(ValueError):
            await fn(query="x", page_size=101)
        assert len(http_mock.calls) == 0

    async def test_api_error(self, mcp_instance, http_mock):
        http_mock.post(API + "search").mock(return_value=httpx.Response(403, text="forbidden"))
        with pytest.raises(GleanAPIError) as exc_info:
            await tool_fn(mcp_instance, "company_search")(query="x")
        assert exc_info.value.status_code == 403

    async def test_chat(self, mcp_instance, http_mock):
        route = http_mock.post(API + "chat").mock(
            return_value=httpx.Response(
                200, json={"messages": [{"author": "GLEAN_AI", "fragments": [{"text": "Hi"}]}]}
            )
        )
        result = await tool_fn(mcp_instance, "chat")(message="hello", context=["earlier"])
        assert result == "GLEAN_AI: Hi"
        assert len(sent_json(route)["messages"]) == 2

    async def test_chat_chunked_and_continued(self, mcp_instance, http_mock):
        text = "a" * 60 + "\n\n" + "b" * 60
        http_mock.post(API + "chat").mock(
            return_value=httpx.Response(
                200, json={"messages": [{"author": "GLEAN_AI", "fragments": [{"text": text}]}]}
            )
        )
        fn = tool_fn(mcp_instance, "chat")

        first = await fn(message="long please")
        assert first.startswith("GLEAN_AI: " + "a" * 60)
        assert "[Chunk 1 of 2]" in first

        response_id = first.split('responseId: "')[1].split('"')[0]
        second = await fn(message="", continue_from={"responseId": response_id, "chunkIndex": 1})
        assert second == "b" * 60
        assert len(http_mock.calls) == 1

    async def test_chat_invalid_continuation(self, mcp_instance):
        fn = tool_fn(mcp_instance, "chat")
        with pytest.raises(ValueError):
            await fn(message="", continue_from={"responseId": "missing", "chunkIndex": 1})
        with pytest.raises(ValueError):
            await fn(message="", continue_from={"responseId": "missing"})

    async def test_people_profile_search(self, mcp_instance, http_mock):
        route = http_mock.post(API + "listentities").mock(
            return_value=httpx.Response(200, json={"results": [{"name": "Jane"}]})
        )
        result = await tool_fn(mcp_instance, "people_profile_search")(filters={"title": "Engineer"})
        assert result.startswith("Found 1 people:")
        assert sent_json(route)["filter"][0]["fieldName"] == "title"

    async def test_people_profile_search_validation(self, mcp_instance):
        fn = tool_fn(mcp_instance, "people_profile_search")
        with pytest.raises(ValueError, match="At least one"):
            await fn()
        with pytest.raises(ValueError, match="Invalid filter key: shoe_size"):
            await fn(filters={"shoe_size": "10"})

    async def test_read_documents(self, mcp_instance, http_mock):
        route = http_mock.post(API + "getdocuments").mock(
            return_value=httpx.Response(200, json={"documents": {"d1": {"id": "d1", "title": "Spec"}}})
        )
        result = await tool_fn(mcp_instance, "read_documents")(document_specs=[{"id": "d1"}])
        assert "Title: Spec" in result
        assert sent_json(route) == {"documentSpecs": [{"id": "d1"}], "includeFields": ["DOCUMENT_CONTENT"]}

    async def test_read_documents_validation(self, mcp_instance):
        fn = tool_fn(mcp_instance, "read_documents")
        with pytest.raises(ValueError):
            await fn(document_specs=[])
        with pytest.raises(ValueError):
            await fn(document_specs=[{"title": "x"}])


# =============================================================================
# 4. Tool 함수 (OAuth)
# =============================================================================

class TestOAuthTools:
    @pytest.fixture
    def mcp_instance(self, make_ctx):
        mcp = FastMCP("Test")
        register_tools(mcp, make_ctx())
        return mcp

    async def test_uses_saved_access_token(self, mcp_instance, state_dir, http_mock):
        expires = datetime.now(timezone.utc) + timedelta(hours=1)
        save_tokens(Tokens("oauth-access", "oauth-refresh", expires), state_dir)
        route = http_mock.post(API + "search").mock(return_value=httpx.Response(200, json={"results": []}))

        await tool_fn(mcp_instance, "company_search")(query="x")

        headers = route.calls[0].request.headers
        assert headers["Authorization"] == "Bearer oauth-access"
        assert headers["X-Glean-Auth-Type"] == "OAUTH"

    async def test_without_tokens(self, mcp_instance, http_mock):
        with pytest.raises(AuthError, match="glean-mcp auth"):
            await tool_fn(mcp_instance, "company_search")(query="x")
        assert len(http_mock.calls) == 0
