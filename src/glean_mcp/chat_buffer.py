"""
chat_buffer.py - 큰 chat 응답을 청크로 나누어 보관

MCP 클라이언트는 도구 결과 크기에 제한이 있으므로, 추정 토큰 수가 한도를 넘는 응답은
문단 -> 문장 -> 고정 길이 순으로 잘라 첫 청크만 반환한다.
나머지는 responseId + chunkIndex 로 이어서 요청한다.
"""
from __future__ import annotations

import math
import re
import uuid
from dataclasses import dataclass

MAX_TOKENS = 20000
CHARS_PER_TOKEN = 4
MAX_STORED_RESPONSES = 100

# 끝 구두점이 없는 마지막 문장도 포함한다
_SENTENCE = re.compile(r"[^.!?]+(?:[.!?]+|$)")


@dataclass(frozen=True)
class ChunkMetadata:
    chunk_index: int
    total_chunks: int
    response_id: str

    @property
    def has_more(self) -> bool:
        return self.chunk_index < self.total_chunks - 1


@dataclass(frozen=True)
class Chunk:
    content: str
    metadata: ChunkMetadata | None = None

    def render(self) -> str:
        """다음 청크가 있으면 이어받는 방법을 덧붙인다."""
        if self.metadata is None or not self.metadata.has_more:
            return self.content
        meta = self.metadata
        return (
            f"{self.content}\n\n---\n[Chunk {meta.chunk_index + 1} of {meta.total_chunks}] "
            f'To continue, use continueFrom: {{ responseId: "{meta.response_id}", '
            f"chunkIndex: {meta.chunk_index + 1} }}"
        )


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / CHARS_PER_TOKEN)


class ChatResponseBuffer:
    def __init__(self, max_tokens: int = MAX_TOKENS, max_responses: int = MAX_STORED_RESPONSES):
        self.max_tokens = max_tokens
        self.max_responses = max_responses
        self._responses: dict[str, list[str]] = {}

    def process(self, response: str, response_id: str | None = None) -> Chunk:
        if estimate_tokens(response) <= self.max_tokens:
            return Chunk(response)

        response_id = response_id or str(uuid.uuid4())
        chunks = self._split_response(response)
        if not chunks:
            return Chunk(response)
        self._responses.pop(response_id, None)
        self._responses[response_id] = chunks
        while len(self._responses) > self.max_responses:
            # 가장 오래된 응답부터 버린다
            self._responses.pop(next(iter(self._responses)))
        return Chunk(chunks[0], ChunkMetadata(0, len(chunks), response_id))

    def get_chunk(self, response_id: str, chunk_index: int) -> Chunk | None:
        """청크를 돌려준다. 마지막 청크를 내주면 보관하던 응답은 버린다."""
        chunks = self._responses.get(response_id)
        if not chunks or chunk_index < 0 or chunk_index >= len(chunks):
            return None
        if chunk_index == len(chunks) - 1:
            self.cleanup(response_id)
        return Chunk(chunks[chunk_index], ChunkMetadata(chunk_index, len(chunks), response_id))

    def cleanup(self, response_id: str) -> None:
        self._responses.pop(response_id, None)

    # --- 분할 ---

    def _split_response(self, response: str) -> list[str]:
        return self._pack(response.split("\n\n"), "\n\n", self._split_paragraph)

    def _split_paragraph(self, paragraph: str) -> list[str]:
        sentences = [s for s in _SENTENCE.findall(paragraph) if s.strip()] or [paragraph]
        return self._pack(sentences, " ", self._force_split)

    def _force_split(self, text: str) -> list[str]:
        size = self.max_tokens * CHARS_PER_TOKEN
        return [text[i:i + size] for i in range(0, len(text), size)]

    def _pack(self, pieces: list[str], joiner: str, split_oversized) -> list[str]:
        """pieces 를 한도 안에서 이어붙인다. 한 조각이 혼자 한도를 넘으면 split_oversized 로 자른다."""
        chunks: list[str] = []
        current = ""
        current_tokens = 0
        for piece in pieces:
            piece_tokens = estimate_tokens(piece)
            if current_tokens + piece_tokens <= self.max_tokens:
                current = f"{current}{joiner}{piece}" if current else piece
                current_tokens += piece_tokens
                continue
            if current.strip():
                chunks.append(current.strip())
            current, current_tokens = "", 0
            if piece_tokens > self.max_tokens:
                chunks.extend(split_oversized(piece))
            else:
                current, current_tokens = piece, piece_tokens
        if current.strip():
            chunks.append(current.strip())
        return chunks
