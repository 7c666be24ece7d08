"""
Unit Tests: Streaming Object Content

Tests:
    - Construction modes (bytes, reader, file, response)
    - Single consumption
    - Exactly-once release on every exit path
    - Empty and truncated response bodies
"""

import io

import pytest

from s3stream.core.errors import ErrorCodes, ErrorKind, StreamAlreadyConsumed
from s3stream.core.types import Bucket, Key
from s3stream.storage.content import ObjectContent
from s3stream.tests.conftest import FakeResponse


class AsyncSink:
    """Sink whose write() is a coroutine."""

    def __init__(self):
        self.chunks = []

    async def write(self, chunk):
        self.chunks.append(chunk)


class FailingSink:
    def write(self, chunk):
        raise OSError("disk full")


def response_content(response, length, chunked=False):
    return ObjectContent.from_response(
        response,
        length=length,
        chunked=chunked,
        chunk_size=4,
        bucket=Bucket("b"),
        key=Key("k"),
    )


class TestConstruction:
    """Transfer modes."""

    def test_from_bytes_is_fixed_length(self):
        content = ObjectContent.from_bytes(b"hello")
        assert content.length == 5
        assert not content.chunked
        assert not content.consumed

    def test_from_reader_is_chunked(self):
        content = ObjectContent.from_reader(io.BytesIO(b"abc"), size=3)
        assert content.length == 3
        assert content.chunked

    @pytest.mark.asyncio
    async def test_from_file(self, tmp_path):
        path = tmp_path / "payload.bin"
        path.write_bytes(b"x" * 100)
        content = ObjectContent.from_file(path, chunk_size=32)
        assert content.length == 100
        assert content.chunked
        assert (await content.read_all()).unwrap() == b"x" * 100

    def test_negative_length_rejected(self):
        async def empty():
            yield b""

        with pytest.raises(ValueError):
            ObjectContent(empty(), length=-1, chunked=False)


class TestDrain:
    """Draining into sinks."""

    @pytest.mark.asyncio
    async def test_drain_into_file_like(self):
        content = ObjectContent.from_bytes(b"a" * 10, chunk_size=3)
        sink = io.BytesIO()

        result = await content.drain(sink)

        assert result.unwrap() == 10
        assert sink.getvalue() == b"a" * 10
        assert content.consumed
        assert content.released

    @pytest.mark.asyncio
    async def test_drain_into_async_sink(self):
        content = ObjectContent.from_bytes(b"abcdefgh", chunk_size=4)
        sink = AsyncSink()

        result = await content.drain(sink)

        assert result.unwrap() == 8
        assert sink.chunks == [b"abcd", b"efgh"]

    @pytest.mark.asyncio
    async def test_read_all(self):
        content = ObjectContent.from_reader(io.BytesIO(b"payload"), size=7, chunk_size=2)
        assert (await content.read_all()).unwrap() == b"payload"

    @pytest.mark.asyncio
    async def test_empty_object_drains_to_zero(self):
        response = FakeResponse(200, chunks=[])
        content = response_content(response, length=0)

        result = await content.drain(io.BytesIO())

        assert result.unwrap() == 0
        assert response.release_calls == 1

    @pytest.mark.asyncio
    async def test_stream_yields_chunks(self):
        content = ObjectContent.from_bytes(b"abcdef", chunk_size=2)
        chunks = [chunk async for chunk in content.stream()]
        assert chunks == [b"ab", b"cd", b"ef"]
        assert content.consumed


class TestSingleConsumption:
    """A content can only be drained once."""

    @pytest.mark.asyncio
    async def test_second_drain_raises(self):
        content = ObjectContent.from_bytes(b"once")
        await content.drain(io.BytesIO())

        with pytest.raises(StreamAlreadyConsumed) as info:
            await content.drain(io.BytesIO())
        assert info.value.error.kind is ErrorKind.STREAM_ALREADY_CONSUMED

    @pytest.mark.asyncio
    async def test_drain_after_stream_raises(self):
        content = ObjectContent.from_bytes(b"once")
        content.stream()
        with pytest.raises(StreamAlreadyConsumed):
            await content.drain(io.BytesIO())

    @pytest.mark.asyncio
    async def test_drain_after_release_raises(self):
        content = ObjectContent.from_bytes(b"once")
        await content.release()
        assert content.consumed
        with pytest.raises(StreamAlreadyConsumed):
            await content.drain(io.BytesIO())

    @pytest.mark.asyncio
    async def test_second_drain_does_not_touch_response(self):
        response = FakeResponse(200, chunks=[b"data"])
        content = response_content(response, length=4)
        await content.drain(io.BytesIO())
        read_before = response.bytes_read

        with pytest.raises(StreamAlreadyConsumed):
            await content.drain(io.BytesIO())
        assert response.bytes_read == read_before


class TestRelease:
    """Exactly-once release on every path."""

    @pytest.mark.asyncio
    async def test_full_drain_releases_once(self):
        response = FakeResponse(200, chunks=[b"abcd", b"ef"])
        content = response_content(response, length=6)

        await content.drain(io.BytesIO())
        await content.release()
        await content.discard()

        assert response.release_calls == 1
        assert response.abort_calls == 0

    @pytest.mark.asyncio
    async def test_discard_reads_remaining_and_releases(self):
        response = FakeResponse(200, chunks=[b"abcd", b"ef"])
        content = response_content(response, length=6)

        await content.discard()

        assert response.bytes_read == 6
        assert response.release_calls == 1
        assert content.consumed

    @pytest.mark.asyncio
    async def test_discard_is_idempotent(self):
        response = FakeResponse(200, chunks=[b"abcd"])
        content = response_content(response, length=4)

        await content.discard()
        await content.discard()

        assert response.release_calls == 1

    @pytest.mark.asyncio
    async def test_sink_failure_aborts_connection(self):
        response = FakeResponse(200, chunks=[b"abcd", b"ef"])
        content = response_content(response, length=6)

        result = await content.drain(FailingSink())

        assert result.is_err()
        assert result.error.kind is ErrorKind.TRANSPORT_FAILURE
        assert response.abort_calls == 1
        assert response.release_calls == 0
        assert content.released

    @pytest.mark.asyncio
    async def test_connection_reset_mid_body(self):
        response = FakeResponse(200, chunks=[b"abcd", b"efgh"], fail_after=1)
        content = response_content(response, length=8)

        result = await content.drain(io.BytesIO())

        assert result.is_err()
        assert result.error.kind is ErrorKind.TRANSPORT_FAILURE
        assert result.error.bucket_name == Bucket("b")
        assert result.error.key == Key("k")
        assert response.abort_calls == 1

    @pytest.mark.asyncio
    async def test_reader_closed_on_release(self):
        reader = io.BytesIO(b"abc")
        content = ObjectContent.from_reader(reader, size=3)
        await content.release()
        assert reader.closed

    @pytest.mark.asyncio
    async def test_reader_closed_after_drain(self):
        reader = io.BytesIO(b"abc")
        content = ObjectContent.from_reader(reader, size=3)
        await content.drain(io.BytesIO())
        assert reader.closed


class TestResponseBodyIntegrity:
    """Bodies that end early."""

    @pytest.mark.asyncio
    async def test_no_chunk_for_declared_length(self):
        response = FakeResponse(200, chunks=[])
        content = response_content(response, length=10)

        result = await content.drain(io.BytesIO())

        assert result.is_err()
        assert result.error.kind is ErrorKind.EMPTY_RESPONSE_STREAM
        assert result.error.key == Key("k")
        assert response.abort_calls == 1

    @pytest.mark.asyncio
    async def test_truncated_body(self):
        response = FakeResponse(200, chunks=[b"abcd"])
        content = response_content(response, length=10)

        result = await content.drain(io.BytesIO())

        assert result.is_err()
        assert result.error.kind is ErrorKind.TRANSPORT_FAILURE
        assert result.error.code == ErrorCodes.TRUNCATED_BODY

    @pytest.mark.asyncio
    async def test_chunked_response_has_no_length_check(self):
        response = FakeResponse(200, chunks=[b"abcd"])
        content = response_content(response, length=None, chunked=True)

        result = await content.drain(io.BytesIO())

        assert result.unwrap() == 4
