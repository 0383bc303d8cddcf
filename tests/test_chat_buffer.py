"""
chat_buffer.py 테스트

max_tokens 를 작게 잡아 짧은 문자열로 분할 동작을 확인한다 (1 토큰 = 4자).
"""
from __future__ import annotations

from glean_mcp.chat_buffer import ChatResponseBuffer, Chunk, ChunkMetadata, estimate_tokens


def test_estimate_tokens_rounds_up():
    assert estimate_tokens("") == 0
    assert estimate_tokens("abcd") == 1
    assert estimate_tokens("abcde") == 2


def test_small_response_is_not_chunked():
    chunk = ChatResponseBuffer(max_tokens=10).process("hello world")
    assert chunk.metadata is None
    assert chunk.render() == "hello world"


def test_splits_on_paragraphs():
    buffer = ChatResponseBuffer(max_tokens=10)
    text = "a" * 30 + "\n\n" + "b" * 30

    first = buffer.process(text, response_id="r1")

    assert first.content == "a" * 30
    assert first.metadata == ChunkMetadata(0, 2, "r1")
    assert buffer.get_chunk("r1", 1).content == "b" * 30


def test_small_paragraphs_are_packed_together():
    buffer = ChatResponseBuffer(max_tokens=10)
    first = buffer.process("aaaa\n\nbbbb\n\n" + "c" * 40, response_id="r1")
    assert first.content == "aaaa\n\nbbbb"


def test_long_paragraph_splits_on_sentences():
    buffer = ChatResponseBuffer(max_tokens=10)
    text = "First sentence is here. Second one is here too. Third goes last."

    buffer.process(text, response_id="r1")
    chunks = buffer._responses["r1"]

    assert len(chunks) > 1
    assert all(estimate_tokens(c) <= 10 for c in chunks)
    assert chunks[0].startswith("First sentence")


def test_unbreakable_text_is_force_split():
    buffer = ChatResponseBuffer(max_tokens=10)
    buffer.process("x" * 100, response_id="r1")
    assert [len(c) for c in buffer._responses["r1"]] == [40, 40, 20]


def test_oversized_piece_after_content_is_still_split():
    buffer = ChatResponseBuffer(max_tokens=10)
    buffer.process("short\n\n" + "y" * 100, response_id="r1")
    assert buffer._responses["r1"] == ["short", "y" * 40, "y" * 40, "y" * 20]


def test_generated_response_id():
    chunk = ChatResponseBuffer(max_tokens=1).process("a" * 10)
    assert chunk.metadata.response_id


def test_render_continuation_hint():
    chunk = Chunk("part", ChunkMetadata(0, 3, "abc"))
    assert chunk.render() == (
        'part\n\n---\n[Chunk 1 of 3] To continue, use continueFrom: { responseId: "abc", chunkIndex: 1 }'
    )


def test_last_chunk_has_no_hint():
    buffer = ChatResponseBuffer(max_tokens=10)
    buffer.process("a" * 30 + "\n\n" + "b" * 30, response_id="r1")
    last = buffer.get_chunk("r1", 1)
    assert last.metadata.has_more is False
    assert last.render() == "b" * 30


def test_get_chunk_out_of_range_and_cleanup():
    buffer = ChatResponseBuffer(max_tokens=10)
    buffer.process("a" * 30 + "\n\n" + "b" * 30, response_id="r1")

    assert buffer.get_chunk("r1", 2) is None
    assert buffer.get_chunk("r1", -1) is None
    assert buffer.get_chunk("missing", 0) is None

    buffer.cleanup("r1")
    assert buffer.get_chunk("r1", 0) is None


def test_trailing_text_without_punctuation_is_kept():
    buffer = ChatResponseBuffer(max_tokens=10)
    text = "Aaaa aaaa. Bbbb bbbb. " * 3 + "trailing words without a period"

    buffer.process(text, response_id="r1")
    chunks = buffer._responses["r1"]

    assert " ".join(chunks).split() == text.split()
    assert chunks[-1].endswith("without a period")


def test_serving_last_chunk_releases_response():
    buffer = ChatResponseBuffer(max_tokens=10)
    buffer.process("a" * 30 + "\n\n" + "b" * 30, response_id="r1")

    assert buffer.get_chunk("r1", 0).content == "a" * 30
    assert "r1" in buffer._responses
    assert buffer.get_chunk("r1", 1).content == "b" * 30
    assert "r1" not in buffer._responses
    assert buffer.get_chunk("r1", 1) is None


def test_oldest_response_is_evicted_past_limit():
    buffer = ChatResponseBuffer(max_tokens=1, max_responses=2)
    for response_id in ("r1", "r2", "r3"):
        buffer.process("a" * 10, response_id=response_id)

    assert list(buffer._responses) == ["r2", "r3"]
    assert buffer.get_chunk("r1", 1) is None
