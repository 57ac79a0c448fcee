"""Tests for code_assistant.lib.stream.sse."""

from __future__ import annotations

from code_assistant.lib.stream.sse import SSEDecoder, encode_event


def _decode_all(decoder: SSEDecoder, *chunks: str) -> list[dict]:
    events: list[dict] = []
    for chunk in chunks:
        events.extend(decoder.feed(chunk))
    events.extend(decoder.flush())
    return events


class TestEncodeEvent:
    def test_framing(self) -> None:
        assert encode_event({"content": "hi"}) == 'data: {"content": "hi"}\n\n'

    def test_decodes_back(self) -> None:
        event = {"done": True, "agentName": "debuggerAgent"}
        assert _decode_all(SSEDecoder(), encode_event(event)) == [event]


class TestSSEDecoder:
    def test_line_split_across_chunks(self) -> None:
        decoder = SSEDecoder()
        assert list(decoder.feed('data: {"cont')) == []
        assert list(decoder.feed('ent": "Hel')) == []
        assert list(decoder.feed('lo"}\n\n')) == [{"content": "Hello"}]

    def test_multiple_events_in_one_chunk(self) -> None:
        text = encode_event({"content": "a"}) + encode_event({"content": "b"})
        assert _decode_all(SSEDecoder(), text) == [{"content": "a"}, {"content": "b"}]

    def test_crlf_line_endings(self) -> None:
        assert _decode_all(SSEDecoder(), 'data: {"done": true}\r\n\r\n') == [{"done": True}]

    def test_non_data_lines_ignored(self) -> None:
        text = ": keep-alive\nevent: message\nid: 7\ndata: {\"content\": \"x\"}\n\n"
        assert _decode_all(SSEDecoder(), text) == [{"content": "x"}]

    def test_malformed_payloads_skipped(self) -> None:
        text = (
            "data: {not json\n"
            "data: [1, 2]\n"
            'data: "just a string"\n'
            'data: {"content": "ok"}\n'
        )
        assert _decode_all(SSEDecoder(), text) == [{"content": "ok"}]

    def test_flush_decodes_trailing_line(self) -> None:
        decoder = SSEDecoder()
        assert list(decoder.feed('data: {"done": true}')) == []
        assert list(decoder.flush()) == [{"done": True}]
        assert list(decoder.flush()) == []

    def test_byte_by_byte(self) -> None:
        text = encode_event({"content": "héllo <tag attr=\"v\">"}) + encode_event({"done": True})
        assert _decode_all(SSEDecoder(), *text) == [
            {"content": "héllo <tag attr=\"v\">"},
            {"done": True},
        ]
