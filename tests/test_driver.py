"""Unit tests for the streaming response driver."""
import asyncio

import pytest

from sshtalk.conversation import CompleteEvent, FailedEvent, PartialEvent, StreamingResponseDriver
from sshtalk.errors import ErrorKind, RequestTimeoutError, StreamCorruptionError, TransportFailureError
from sshtalk.llm import ChatMessage

from conftest import END, FakeLLMProvider, settle

CONTEXT = [
    ChatMessage(role="system", content="be brief"),
    ChatMessage(role="user", content="hi"),
]


async def _collect(driver: StreamingResponseDriver) -> list:
    return [event async for event in driver.stream()]


class TestPullMode:
    """Tests for consuming driver.stream() directly."""

    @pytest.mark.asyncio
    async def test_partials_carry_accumulated_text(self):
        """Test that each partial holds everything received so far."""
        llm = FakeLLMProvider(deltas=["Hel", "lo", "!"])
        driver = StreamingResponseDriver(llm, CONTEXT)

        events = await _collect(driver)

        assert events == [
            PartialEvent("Hel"),
            PartialEvent("Hello"),
            PartialEvent("Hello!"),
            CompleteEvent("Hello!"),
        ]
        assert driver.accumulated == "Hello!"
        assert driver.finished
        assert llm.closed_streams == 1

    @pytest.mark.asyncio
    async def test_empty_response_completes_with_empty_text(self):
        """Test that a stream with no units still completes."""
        driver = StreamingResponseDriver(FakeLLMProvider(deltas=[]), CONTEXT)

        assert await _collect(driver) == [CompleteEvent("")]

    @pytest.mark.asyncio
    async def test_context_is_copied(self):
        """Test that later changes to the caller's list are not sent."""
        llm = FakeLLMProvider(deltas=["ok"])
        context = list(CONTEXT)
        driver = StreamingResponseDriver(llm, context, model="other-model")
        context.append(ChatMessage(role="user", content="late"))

        await _collect(driver)

        assert llm.calls == [CONTEXT]
        assert llm.models == ["other-model"]

    @pytest.mark.asyncio
    async def test_stream_consumed_once(self):
        """Test that a finished driver cannot be replayed."""
        driver = StreamingResponseDriver(FakeLLMProvider(deltas=["a"]), CONTEXT)
        await _collect(driver)

        with pytest.raises(RuntimeError):
            await _collect(driver)


class TestFailures:
    """Tests for failure classification."""

    @pytest.mark.asyncio
    async def test_transport_failure_mid_stream(self):
        """Test that partial output is followed by one failed event."""
        llm = FakeLLMProvider(deltas=["Hel"], error=TransportFailureError("reset by peer"))
        events = await _collect(StreamingResponseDriver(llm, CONTEXT))

        assert events[0] == PartialEvent("Hel")
        assert isinstance(events[-1], FailedEvent)
        assert events[-1].kind == ErrorKind.TRANSPORT_FAILURE
        assert "reset by peer" in events[-1].message
        assert len(events) == 2

    @pytest.mark.asyncio
    async def test_failure_when_opening(self):
        """Test that an error before the first unit is reported too."""
        llm = FakeLLMProvider(deltas=[], open_error=TransportFailureError("refused"))

        events = await _collect(StreamingResponseDriver(llm, CONTEXT))

        assert events == [FailedEvent(ErrorKind.TRANSPORT_FAILURE, "refused")]

    @pytest.mark.asyncio
    async def test_corruption_from_provider(self):
        """Test that provider-detected corruption keeps its kind."""
        llm = FakeLLMProvider(deltas=[], error=StreamCorruptionError("bad json"))

        events = await _collect(StreamingResponseDriver(llm, CONTEXT))

        assert events[-1].kind == ErrorKind.STREAM_CORRUPTION

    @pytest.mark.asyncio
    async def test_non_text_unit_is_corruption(self):
        """Test that a unit that is not text fails the stream."""
        llm = FakeLLMProvider(deltas=["ok", {"delta": 1}, "never"])

        events = await _collect(StreamingResponseDriver(llm, CONTEXT))

        assert events[0] == PartialEvent("ok")
        assert events[-1].kind == ErrorKind.STREAM_CORRUPTION
        assert len(events) == 2

    @pytest.mark.asyncio
    async def test_unexpected_error_is_transport_failure(self):
        """Test that an unclassified error still ends the stream."""
        llm = FakeLLMProvider(deltas=[], error=OSError("broken pipe"))

        events = await _collect(StreamingResponseDriver(llm, CONTEXT))

        assert events == [FailedEvent(ErrorKind.TRANSPORT_FAILURE, "broken pipe")]

    @pytest.mark.asyncio
    async def test_backend_timeout_without_budget(self):
        """Test that a backend timeout fails the stream when no budget is set."""
        llm = FakeLLMProvider(deltas=["Hi"], error=RequestTimeoutError("sdk timeout"))

        events = await _collect(StreamingResponseDriver(llm, CONTEXT))

        assert events == [PartialEvent("Hi"), FailedEvent(ErrorKind.TIMEOUT, "sdk timeout")]
        assert llm.closed_streams == 1

    @pytest.mark.asyncio
    async def test_backend_timeout_within_budget_keeps_message(self):
        """Test that a backend timeout is not reported as the total budget."""
        llm = FakeLLMProvider(deltas=[], error=RequestTimeoutError("sdk timeout"))

        events = await _collect(StreamingResponseDriver(llm, CONTEXT, timeout=120))

        assert events == [FailedEvent(ErrorKind.TIMEOUT, "sdk timeout")]

    @pytest.mark.asyncio
    async def test_type_error_from_provider_is_transport_failure(self):
        """Test that a provider bug is not mistaken for a corrupt stream."""
        llm = FakeLLMProvider(deltas=["ok"], error=TypeError("unsupported operand"))

        events = await _collect(StreamingResponseDriver(llm, CONTEXT))

        assert events[-1] == FailedEvent(ErrorKind.TRANSPORT_FAILURE, "unsupported operand")

    @pytest.mark.asyncio
    async def test_total_duration_timeout(self):
        """Test that the budget covers the whole response, not each unit."""
        llm = FakeLLMProvider(deltas=["a", "b", "c", "d"], delay=0.05)
        driver = StreamingResponseDriver(llm, CONTEXT, timeout=0.12)

        events = await _collect(driver)

        assert isinstance(events[-1], FailedEvent)
        assert events[-1].kind == ErrorKind.TIMEOUT
        assert all(isinstance(e, PartialEvent) for e in events[:-1])
        assert len(events) < 5
        assert llm.closed_streams == 1


class TestPushMode:
    """Tests for start()/run() delivery."""

    @pytest.mark.asyncio
    async def test_events_delivered_in_order(self):
        """Test that the deliver callback sees every event in order."""
        received = []
        driver = StreamingResponseDriver(
            FakeLLMProvider(deltas=["a", "b"]), CONTEXT, deliver=received.append
        )

        terminal = await driver.start()

        assert received == [PartialEvent("a"), PartialEvent("ab"), CompleteEvent("ab")]
        assert terminal == CompleteEvent("ab")

    @pytest.mark.asyncio
    async def test_start_twice_fails(self):
        """Test that one driver runs one request."""
        driver = StreamingResponseDriver(FakeLLMProvider(deltas=[]), CONTEXT)
        driver.start()

        with pytest.raises(RuntimeError):
            driver.start()
        await driver.task

    @pytest.mark.asyncio
    async def test_close_stops_delivery(self, fed_llm):
        """Test that nothing is delivered once the channel is closed."""
        received = []
        driver = StreamingResponseDriver(fed_llm, CONTEXT, deliver=received.append)
        task = driver.start()
        await settle()

        fed_llm.feed(0).put_nowait("Hel")
        await settle()
        driver.close()
        fed_llm.feed(0).put_nowait("lo")
        fed_llm.feed(0).put_nowait(END)

        with pytest.raises(asyncio.CancelledError):
            await task

        assert received == [PartialEvent("Hel")]
        assert driver.closed
        assert fed_llm.closed_streams == 1
