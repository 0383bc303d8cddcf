"""
tools.py - MCP Tool 정의 모듈

Glean 검색 백엔드를 네 개의 도구로 노출한다.
    company_search         사내 문서 검색
    chat                   Glean Assistant 에 질문 (긴 답변은 청크로 나눔)
    people_profile_search  사람 디렉토리 검색
    read_documents         문서 ID/URL 로 본문 읽기

각 도구는 호출될 때마다 build_client 로 인증 헤더를 준비한다.
OAuth 토큰이 만료되었으면 이때 갱신된다.
"""
from __future__ import annotations

from typing import TYPE_CHECKING

from mcp.server.fastmcp import FastMCP

from .chat_buffer import ChatResponseBuffer
from .client import build_client
from .formatters import (
    format_chat_response,
    format_documents,
    format_people_results,
    format_search_results,
)

if TYPE_CHECKING:
    from .context import AppContext

# 사람 검색에서 허용하는 필터 키
PEOPLE_FACETS = (
    "email",
    "first_name",
    "last_name",
    "manager_email",
    "department",
    "title",
    "location",
    "city",
    "country",
    "state",
    "region",
    "business_unit",
    "team",
    "team_id",
    "nickname",
    "preferred_name",
    "roletype",
    "reportsto",
    "startafter",
    "startbefore",
    "industry",
    "has",
    "from",
)


# --- 요청 변환 ---

def build_search_request(
    query: str,
    datasources: list[str] | None = None,
    page_size: int = 10,
    cursor: str | None = None,
) -> dict:
    request: dict = {"query": query, "pageSize": page_size or 10}
    if cursor:
        request["cursor"] = cursor
    if datasources:
        request["requestOptions"] = {"datasourcesFilter": datasources, "facetBucketSize": 10}
    return request


def build_chat_request(message: str, context: list[str] | None = None) -> dict:
    texts = [*(context or []), message]
    return {
        "messages": [
            {"author": "USER", "messageType": "CONTENT", "fragments": [{"text": text}]}
            for text in texts
        ]
    }


def build_people_request(
    query: str | None = None,
    filters: dict[str, str] | None = None,
    page_size: int | None = None,
) -> dict:
    request: dict = {"entityType": "PEOPLE", "pageSize": page_size or 10}
    if query:
        request["query"] = query
    if filters:
        request["filter"] = [
            {"fieldName": name, "values": [{"relationType": "EQUALS", "value": value}]}
            for name, value in filters.items()
        ]
    return request


def build_documents_request(document_specs: list[dict]) -> dict:
    specs = []
    for spec in document_specs:
        specs.append({k: spec[k] for k in ("id", "url") if spec.get(k)})
    return {"documentSpecs": specs, "includeFields": ["DOCUMENT_CONTENT"]}


def register_tools(mcp: FastMCP, ctx: AppContext, buffer: ChatResponseBuffer | None = None) -> None:
    """모든 Tool을 FastMCP 인스턴스에 등록한다."""
    chat_buffer = buffer or ChatResponseBuffer()

    @mcp.tool()
    async def company_search(
        query: str,
        datasources: list[str] | None = None,
        page_size: int = 10,
        cursor: str | None = None,
    ) -> str:
        """Search Glean's content index across the company's data sources.

        Args:
            query: The search query. This is what you want to search for.
            datasources: Optional list of data sources to search in, e.g. "github", "gdrive", "confluence", "jira".
            page_size: Number of results to return per page (default 10, max 100).
            cursor: Pagination cursor from a previous response to fetch the next page.
        """
        if not query.strip():
            raise ValueError("query must not be empty")
        if not 1 <= page_size <= 100:
            raise ValueError("page_size must be between 1 and 100")

        client = await build_client(ctx)
        results = await client.search(build_search_request(query, datasources, page_size, cursor))
        return format_search_results(results)

    @mcp.tool()
    async def chat(
        message: str,
        context: list[str] | None = None,
        continue_from: dict | None = None,
    ) -> str:
        """Chat with Glean Assistant using Glean's RAG-backed answers.

        Args:
            message: The user question or message to send to Glean Assistant.
            context: Optional previous messages, included in order before the current message.
            continue_from: Continue a chunked response: {"responseId": "...", "chunkIndex": 1}.
        """
        if continue_from:
            response_id = continue_from.get("responseId")
            chunk_index = continue_from.get("chunkIndex")
            if not isinstance(response_id, str) or not isinstance(chunk_index, int):
                raise ValueError("continue_from requires responseId and chunkIndex")
            chunk = chat_buffer.get_chunk(response_id, chunk_index)
            if chunk is None:
                raise ValueError("Invalid continuation request: chunk not found")
            return chunk.render()

        if not message.strip():
            raise ValueError("message must not be empty")

        client = await build_client(ctx)
        response = await client.chat(build_chat_request(message, context))
        return chat_buffer.process(format_chat_response(response)).render()

    @mcp.tool()
    async def people_profile_search(
        query: str | None = None,
        filters: dict[str, str] | None = None,
        page_size: int | None = None,
    ) -> str:
        """Search the company's people directory by name, title, team and other facets.

        Args:
            query: Free-text query to search people by name, title, etc.
            filters: Facet filters as {"facet": "value"}. Allowed facets: email, first_name,
                last_name, manager_email, department, title, location, city, country, state,
                region, business_unit, team, team_id, nickname, preferred_name, roletype,
                reportsto, startafter, startbefore, industry, has, from.
            page_size: How many people to return (1-100, default 10).
        """
        if not (query and query.strip()) and not filters:
            raise ValueError('At least one of "query" or "filters" must be provided.')
        invalid = [key for key in (filters or {}) if key not in PEOPLE_FACETS]
        if invalid:
            raise ValueError(
                f"Invalid filter key: {', '.join(invalid)}. Must be one of: {', '.join(PEOPLE_FACETS)}"
            )
        if page_size is not None and not 1 <= page_size <= 100:
            raise ValueError("page_size must be between 1 and 100")

        client = await build_client(ctx)
        results = await client.list_entities(build_people_request(query, filters, page_size))
        return format_people_results(results)

    @mcp.tool()
    async def read_documents(document_specs: list[dict]) -> str:
        """Read documents from Glean by ID or URL.

        Args:
            document_specs: Documents to retrieve, each {"id": "..."} or {"url": "..."}.
        """
        if not document_specs:
            raise ValueError("At least one document spec must be provided")
        for spec in document_specs:
            if not (spec.get("id") or spec.get("url")):
                raise ValueError("Either id or url must be provided for each document spec")

        client = await build_client(ctx)
        response = await client.get_documents(build_documents_request(document_specs))
        return format_documents(response)
