"""
Tests for progress events, the event channel and the SSE decoder.
"""

import asyncio
import json

import pytest

from core.generation.events import EventChannel, ProgressEvent, SseDecoder


class TestProgressEvent:
    def test_processing_to_sse(self):
        sse = ProgressEvent.processing("CHCCCS038", "1").to_sse()

        assert sse == 'event: processing\ndata: {"unitCode": "CHCCCS038", "questionKey": "1"}\n\n'

    def test_error_without_item(self):
        event = ProgressEvent.error("Schema file missing")

        assert event.data == {"message": "Schema file missing"}
        assert not event.is_fatal

    def test_fatal_error(self):
        event = ProgressEvent.error("429", "U1", "2", fatal=True)

        assert event.is_fatal
        assert event.data == {"unitCode": "U1", "questionKey": "2", "message": "429", "fatal": True}

    def test_token_usage_payload(self):
        event = ProgressEvent.token_usage("U1-2", 120, 45)
        assert event.data == {"section": "U1-2", "inputTokens": 120, "outputTokens": 45}

    def test_done_carries_result_map(self):
        results = {"U1": {"1": {"main_question": "Q"}}}
        sse = ProgressEvent.done(results).to_sse()

        assert sse.startswith("event: done\n")
        assert json.loads(sse.split("data: ", 1)[1]) == results

    def test_non_ascii_kept(self):
        sse = ProgressEvent.error("Zoë’s transcript").to_sse()
        assert "Zoë’s" in sse


class TestEventChannel:
    @pytest.mark.asyncio
    async def test_order_and_close(self):
        channel = EventChannel()
        for key in ("1", "2", "3"):
            channel.emit(ProgressEvent.processing("U1", key))
        channel.close()

        received = [event.data["questionKey"] async for event in channel]
        assert received == ["1", "2", "3"]

    @pytest.mark.asyncio
    async def test_emit_after_close_is_dropped(self):
        channel = EventChannel()
        channel.emit(ProgressEvent.processing("U1", "1"))
        channel.close()
        channel.close()

        assert channel.closed
        assert channel.emit(ProgressEvent.done({})) is False
        assert [e.event async for e in channel] == ["processing"]

    @pytest.mark.asyncio
    async def test_consumer_waits_for_producer(self):
        channel = EventChannel()

        async def produce():
            await asyncio.sleep(0.01)
            channel.emit(ProgressEvent.processing("U1", "1"))
            await asyncio.sleep(0.01)
            channel.close()

        producer = asyncio.create_task(produce())
        events = [e async for e in channel]
        await producer

        assert len(events) == 1


class TestSseDecoder:
    def test_frames_split_across_chunks(self):
        wire = (
            ProgressEvent.processing("U1", "1").to_sse()
            + ProgressEvent.completed("U1", "1", {"conclusion": "ok"}).to_sse()
        ).encode("utf-8")

        decoder = SseDecoder()
        decoded = []
        for i in range(0, len(wire), 7):
            decoded.extend(decoder.feed(wire[i : i + 7]))

        assert decoded == [
            ("processing", {"unitCode": "U1", "questionKey": "1"}),
            ("completed", {"unitCode": "U1", "questionKey": "1", "result": {"conclusion": "ok"}}),
        ]

    def test_multibyte_character_split(self):
        wire = ProgressEvent.error("Zoë").to_sse().encode("utf-8")
        split = wire.index("ë".encode("utf-8")) + 1

        decoder = SseDecoder()
        frames = decoder.feed(wire[:split]) + decoder.feed(wire[split:])

        assert frames == [("error", {"message": "Zoë"})]

    def test_partial_frame_is_buffered(self):
        decoder = SseDecoder()

        assert decoder.feed('event: done\ndata: {"U1"') == []
        assert decoder.feed(': {}}\n\n') == [("done", {"U1": {}})]

    def test_malformed_frame_is_skipped(self):
        decoder = SseDecoder()
        frames = decoder.feed(
            "event: error\ndata: {not json\n\n"
            'event: retry\ndata: {"attempt": 2}\n\n'
        )
        assert frames == [("retry", {"attempt": 2})]

    def test_crlf_and_comment_frames(self):
        decoder = SseDecoder()
        frames = decoder.feed(': keep-alive\r\n\r\nevent: done\r\ndata: {}\r\n\r\n')
        assert frames == [("done", {})]
