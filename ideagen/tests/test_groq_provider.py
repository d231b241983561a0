import httpx
import pytest

from ideagen.core.errors import ConfigError, ProviderError
from ideagen.features.streaming.provider import GroqCompletionProvider
from ideagen.features.streaming.prompts import IDEA_MESSAGES

from ideagen.tests.mocks import FakeAsyncGroq, FakeChunk


async def drain(provider, model="m"):
    return [frame async for frame in provider.open_stream(model, IDEA_MESSAGES)]


@pytest.mark.asyncio
async def test_streams_frames_and_closes_upstream():
    fake = FakeAsyncGroq([FakeChunk("Hello "), FakeChunk(None), FakeChunk("World", finish_reason="stop")])
    provider = GroqCompletionProvider("gsk_test", client_factory=fake)

    frames = await drain(provider, model="llama-3.1-8b-instant")

    assert [f.delta for f in frames] == ["Hello ", "", "World"]
    assert frames[-1].finish_reason == "stop"
    assert fake.requests[0]["model"] == "llama-3.1-8b-instant"
    assert fake.requests[0]["stream"] is True
    assert fake.requests[0]["messages"] == list(IDEA_MESSAGES)
    assert fake.stream.closed
    assert fake.closed


@pytest.mark.asyncio
async def test_chunks_without_choices_are_skipped():
    empty = FakeChunk("x")
    empty.choices = []
    fake = FakeAsyncGroq([empty, FakeChunk("y", finish_reason="stop")])

    frames = await drain(GroqCompletionProvider("gsk_test", client_factory=fake))

    assert [f.delta for f in frames] == ["y"]


@pytest.mark.asyncio
async def test_open_failure_is_provider_error():
    fake = FakeAsyncGroq(open_error=httpx.ConnectError("connection refused"))
    with pytest.raises(ProviderError) as exc:
        await drain(GroqCompletionProvider("gsk_test", client_factory=fake))
    assert "connection failed" in exc.value.message
    assert fake.closed


@pytest.mark.asyncio
async def test_mid_stream_failure_is_provider_error():
    fake = FakeAsyncGroq([FakeChunk("partial")], stream_error=httpx.ReadError("connection reset"))
    provider = GroqCompletionProvider("gsk_test", client_factory=fake)

    received = []
    with pytest.raises(ProviderError):
        async for frame in provider.open_stream("m", IDEA_MESSAGES):
            received.append(frame.delta)

    assert received == ["partial"]
    assert fake.stream.closed


@pytest.mark.asyncio
async def test_malformed_chunk_is_provider_error():
    fake = FakeAsyncGroq([FakeChunk(["not", "text"])])
    with pytest.raises(ProviderError):
        await drain(GroqCompletionProvider("gsk_test", client_factory=fake))


@pytest.mark.asyncio
async def test_missing_api_key_is_config_error():
    provider = GroqCompletionProvider(None, client_factory=FakeAsyncGroq())
    assert not provider.configured
    with pytest.raises(ConfigError):
        await drain(provider)


@pytest.mark.asyncio
async def test_early_close_closes_upstream():
    fake = FakeAsyncGroq([FakeChunk("a"), FakeChunk("b"), FakeChunk("c")])
    stream = GroqCompletionProvider("gsk_test", client_factory=fake).open_stream("m", IDEA_MESSAGES)

    first = await stream.__anext__()
    await stream.aclose()

    assert first.delta == "a"
    assert fake.stream.closed
    assert fake.closed
