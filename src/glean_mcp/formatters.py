"""
formatters.py - Glean API 응답을 LLM이 읽기 쉬운 텍스트로 변환
"""
from __future__ import annotations

from datetime import datetime


# --- search ---

def format_search_results(results: dict | None) -> str:
    if not results or not isinstance(results.get("results"), list):
        return "No results found."

    blocks = []
    for index, result in enumerate(results["results"], start=1):
        title = result.get("title") or "No title"
        url = result.get("url") or ""
        document = result.get("document") or {}

        snippets = sorted(
            result.get("snippets") or [],
            key=lambda s: s.get("snippetTextOrdering") or 0,
        )
        snippet_text = "\n".join(s["text"] for s in snippets if s.get("text"))
        if not snippet_text:
            snippet_text = "No description available"

        source = document.get("datasource") or "Unknown source"
        blocks.append(f"[{index}] {title}\n{snippet_text}\nSource: {source}\nURL: {url}")

    shown = len(results["results"])
    total = results.get("totalResults") or shown
    query = (results.get("metadata") or {}).get("searchedQuery") or "your query"

    pagination = ""
    if results.get("hasMoreResults"):
        pagination = "\n\n---\nMore results available. "
        if results.get("cursor"):
            pagination += f'Use cursor="{results["cursor"]}" to fetch the next page.'
        else:
            pagination += "Additional pages may be available."

    formatted = "\n\n".join(blocks)
    return (
        f'Search results for "{query}" (showing {shown} of {total} results):\n\n'
        f"{formatted}{pagination}"
    )


# --- chat ---

def _format_fragment(fragment: dict) -> str:
    if fragment.get("text"):
        return fragment["text"]
    if fragment.get("querySuggestion"):
        return f"Query: {fragment['querySuggestion'].get('query', '')}"
    structured = fragment.get("structuredResults")
    if isinstance(structured, list):
        lines = []
        for result in structured:
            doc = result.get("document")
            if doc:
                lines.append(f"Document: {doc.get('title') or 'Untitled'} ({doc.get('url') or 'No URL'})")
        return "\n".join(lines)
    return ""


def format_chat_response(response: dict | None) -> str:
    messages = (response or {}).get("messages")
    if not isinstance(messages, list) or not messages:
        return "No response received."

    formatted = []
    for message in messages:
        author = message.get("author") or "Unknown"
        fragments = message.get("fragments") or []
        text = "\n".join(filter(None, (_format_fragment(f) for f in fragments)))

        citations = ""
        if message.get("citations"):
            lines = []
            for index, citation in enumerate(message["citations"], start=1):
                source = citation.get("sourceDocument") or {}
                lines.append(f"[{index}] {source.get('title') or 'Unknown source'} - {source.get('url') or ''}")
            citations = "\n\nSources:\n" + "\n".join(lines)

        message_type = f" ({message['messageType']})" if message.get("messageType") else ""
        step = f" [Step: {message['stepId']}]" if message.get("stepId") else ""
        formatted.append(f"{author}{message_type}{step}: {text}{citations}")

    return "\n\n".join(formatted)


# --- people ---

def format_people_results(results: dict | None) -> str:
    people = (results or {}).get("results")
    if not isinstance(people, list) or not people:
        return "No matching people found."

    lines = []
    for index, person in enumerate(people, start=1):
        metadata = person.get("metadata") or {}
        location_parts = metadata.get("structuredLocation") or {}
        alias_emails = metadata.get("aliasEmails") or []
        teams = metadata.get("teams") or []

        name = metadata.get("preferredName") or person.get("name") or "Unnamed"
        title = metadata.get("title") or "Unknown title"
        department = metadata.get("department") or "Unknown department"
        location = (
            metadata.get("location")
            or location_parts.get("city")
            or location_parts.get("country")
            or "Unknown location"
        )
        email = metadata.get("email") or (alias_emails[0] if alias_emails else None) or "Unknown email"
        team = f" [{teams[0].get('name')}]" if teams and teams[0].get("name") else ""

        lines.append(f"{index}. {name} – {title}{team}, {department} ({location}) • {email}")

    total = results.get("totalCount")
    if not isinstance(total, int):
        total = len(people)
    return f"Found {total} people:\n\n" + "\n".join(lines)


# --- documents ---

def _format_date(value: str) -> str:
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date().isoformat()
    except ValueError:
        return value


def format_documents(response: dict | None) -> str:
    documents = (response or {}).get("documents")
    # getdocuments 는 요청 키 -> 문서 맵으로 응답하기도 한다
    if isinstance(documents, dict):
        documents = list(documents.values())
    if not isinstance(documents, list):
        raise ValueError("Invalid response format from Glean API")

    blocks = []
    for doc in documents:
        lines = ["--- Document ---"]
        for label, key in (("Title", "title"), ("URL", "url"), ("ID", "id")):
            if doc.get(key):
                lines.append(f"{label}: {doc[key]}")

        metadata = doc.get("metadata") or {}
        if metadata.get("createdAt"):
            lines.append(f"Created: {_format_date(metadata['createdAt'])}")
        if metadata.get("updatedAt"):
            lines.append(f"Updated: {_format_date(metadata['updatedAt'])}")
        if (metadata.get("author") or {}).get("name"):
            lines.append(f"Author: {metadata['author']['name']}")
        if metadata.get("datasource"):
            lines.append(f"Source: {metadata['datasource']}")

        lines.append("")
        body = doc.get("body")
        if body:
            mime_type = body.get("mimeType")
            text = body.get("textContent")
            if mime_type == "text/plain" and text:
                lines.append(f"Content:\n{text}")
            elif mime_type == "text/html" and text:
                lines.append(f"Content (HTML):\n{text}")
            else:
                lines.append(f"Content: [{mime_type or 'Unknown format'}]")
        blocks.append("\n".join(lines))

    return "\n\n".join(blocks).strip()
