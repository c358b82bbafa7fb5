"""Tests for the bounded channel, the streaming pipe and object fetches."""

import gzip
import io
import threading
import time
import zlib

import pytest

from s3_tools.core.exceptions import TransferError, ValidationError
from s3_tools.transfer import (
    BoundedChannel,
    ChannelClosed,
    StreamingTransferPipe,
    fetch_object,
)
from s3_tools.transfer.pipe import GzipDecoder, is_gzip


class BrokenSink:
    """Sink that fails after accepting ``accept`` writes."""

    def __init__(self, error, accept=0):
        self.error = error
        self.accept = accept
        self.writes = 0

    def write(self, data):
        if self.writes >= self.accept:
            raise self.error
        self.writes += 1
        return len(data)

    def flush(self):
        pass


class FailingSource:
    """Source that fails after returning ``chunks`` chunks."""

    def __init__(self, chunks=1):
        self.chunks = chunks

    def read(self, size):
        if self.chunks == 0:
            raise OSError("connection reset")
        self.chunks -= 1
        return b"x" * size


class EndlessSource:
    def __init__(self):
        self.reads = 0

    def read(self, size):
        self.reads += 1
        return b"y" * size


class SlowSink(io.BytesIO):
    def write(self, data):
        time.sleep(0.005)
        return super().write(data)


class TestBoundedChannel:
    """Test the producer/consumer hand-off."""

    def test_fifo(self):
        channel = BoundedChannel(4)
        for item in range(3):
            channel.put(item)
        assert [channel.get(), channel.get(), channel.get()] == [0, 1, 2]

    def test_put_on_closed_channel(self):
        channel = BoundedChannel(1)
        channel.close()

        assert channel.closed
        with pytest.raises(ChannelClosed):
            channel.put("item")

    def test_close_releases_blocked_producer(self):
        channel = BoundedChannel(1, poll_interval=0.01)
        channel.put("first")
        errors = []

        def produce():
            try:
                channel.put("second")
            except ChannelClosed as e:
                errors.append(e)

        producer = threading.Thread(target=produce)
        producer.start()
        time.sleep(0.05)
        assert channel.backpressured

        channel.close()
        producer.join(timeout=2)

        assert not producer.is_alive()
        assert len(errors) == 1
        assert channel.backpressure_events == 1

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            BoundedChannel(0)


class TestGzip:
    """Test gzip detection and decoding."""

    def test_detect_by_header(self):
        assert is_gzip("gzip", b"plain")
        assert is_gzip("x-GZIP", b"plain")

    def test_detect_by_magic(self):
        assert is_gzip(None, gzip.compress(b"data"))
        assert not is_gzip(None, b"data")
        assert not is_gzip("identity", b"")

    def test_multi_member(self):
        """Test concatenated gzip members decode to the concatenated data."""
        payload = gzip.compress(b"first\n") + gzip.compress(b"second\n")
        decoder = GzipDecoder()

        output = b"".join(decoder.decode(payload[i : i + 7]) for i in range(0, len(payload), 7))

        assert output + decoder.flush() == b"first\nsecond\n"

    def test_truncated_member_fails_on_flush(self):
        payload = gzip.compress(b"hello world " * 1000)
        decoder = GzipDecoder()
        decoder.decode(payload[: len(payload) // 2])

        with pytest.raises(zlib.error, match="end-of-stream"):
            decoder.flush()


class TestStreamingTransferPipe:
    """Test source-to-sink streaming."""

    def test_copies_bytes_verbatim(self, run_context):
        data = bytes(range(256)) * 1000
        sink = io.BytesIO()

        session = StreamingTransferPipe(run_context, chunk_size=1000, channel_depth=2).run(
            io.BytesIO(data), sink
        )

        assert sink.getvalue() == data
        assert session.completed
        assert session.bytes_received == session.bytes_transferred == len(data)
        assert not session.decompressing

    def test_gzip_verbatim_when_disabled(self, run_context):
        data = gzip.compress(b"hello")
        sink = io.BytesIO()

        StreamingTransferPipe(run_context, decompress=False).run(
            io.BytesIO(data), sink, content_encoding="gzip"
        )

        assert sink.getvalue() == data

    def test_gzip_detected(self, run_context):
        text = b"line\n" * 10000
        sink = io.BytesIO()

        session = StreamingTransferPipe(run_context, chunk_size=512).run(
            io.BytesIO(gzip.compress(text)), sink
        )

        assert sink.getvalue() == text
        assert session.decompressing
        assert session.bytes_transferred == len(text)
        assert session.bytes_received < len(text)

    def test_gzip_forced_on_corrupt_data(self, run_context):
        with pytest.raises(TransferError, match="decompressing"):
            StreamingTransferPipe(run_context, decompress=True).run(
                io.BytesIO(b"not gzip at all"), io.BytesIO()
            )

    def test_truncated_gzip_is_an_error(self, run_context):
        """Test a gzip source cut short fails instead of completing."""
        payload = gzip.compress(b"hello world " * 1000)

        with pytest.raises(TransferError, match="end-of-stream marker"):
            StreamingTransferPipe(run_context, decompress=True).run(
                io.BytesIO(payload[: len(payload) // 2]), io.BytesIO()
            )

    def test_empty_source(self, run_context):
        sink = io.BytesIO()
        session = StreamingTransferPipe(run_context).run(io.BytesIO(b""), sink)

        assert session.completed
        assert sink.getvalue() == b""

    def test_broken_stdout_ends_early(self, run_context):
        """Test a closed stdout stops the transfer without an error."""
        source = EndlessSource()
        sink = BrokenSink(BrokenPipeError(), accept=3)

        session = StreamingTransferPipe(run_context, chunk_size=16, channel_depth=2).run(
            source, sink, sink_is_stdout=True
        )

        assert session.terminated_early
        assert not session.completed
        assert session.bytes_transferred == 48

    def test_broken_pipe_on_file_is_an_error(self, run_context):
        with pytest.raises(TransferError, match="Error writing output"):
            StreamingTransferPipe(run_context).run(
                io.BytesIO(b"data"), BrokenSink(BrokenPipeError())
            )

    def test_sink_error(self, run_context):
        with pytest.raises(TransferError, match="No space left"):
            StreamingTransferPipe(run_context, chunk_size=4, channel_depth=1).run(
                EndlessSource(), BrokenSink(OSError("No space left on device"), accept=1)
            )

    def test_source_error(self, run_context):
        sink = io.BytesIO()
        with pytest.raises(TransferError, match="connection reset"):
            StreamingTransferPipe(run_context, chunk_size=8).run(FailingSource(2), sink)

        assert sink.getvalue() == b"x" * 16

    def test_backpressure_bounds_reads(self, run_context):
        """Test a slow sink keeps the source at most channel_depth chunks ahead."""
        source = io.BytesIO(b"z" * 64 * 50)
        sink = SlowSink()
        pipe = StreamingTransferPipe(run_context, chunk_size=64, channel_depth=2)
        ahead = []

        def on_progress(session, written):
            ahead.append(source.tell() - session.bytes_transferred)

        session = pipe.run(source, sink, on_progress=on_progress)

        assert session.completed
        assert sink.getvalue() == b"z" * 64 * 50
        # Queued chunks plus the one the pump is holding
        assert max(ahead) <= (2 + 1) * 64
        assert session.channel.backpressure_events > 0

    def test_reports_progress_once_at_the_end(self, run_context, progress_lines):
        StreamingTransferPipe(run_context).run(io.BytesIO(b"abc"), io.BytesIO())

        assert progress_lines == ["Transferred 3 bytes in 0.0s"]

    @pytest.mark.parametrize("kwargs", [{"chunk_size": 0}, {"channel_depth": 0}])
    def test_invalid_sizes(self, run_context, kwargs):
        with pytest.raises(ValidationError):
            StreamingTransferPipe(run_context, **kwargs)


class TestFetchObject:
    """Test fetching one object through the provider."""

    def test_fetch(self, run_context):
        sink = io.BytesIO()
        session = fetch_object(run_context, "test-bucket", "data/b.log", sink)

        assert sink.getvalue() == b"bravo-bravo"
        assert session.bytes_transferred == 11

    def test_fetch_range(self, run_context):
        sink = io.BytesIO()
        fetch_object(run_context, "test-bucket", "data/b.log", sink, byte_range="2-4")

        assert sink.getvalue() == b"avo"

    def test_invalid_range_checked_before_request(self, run_context, stub_provider):
        stub_provider.get_object = None
        with pytest.raises(ValidationError):
            fetch_object(
                run_context, "test-bucket", "data/b.log", io.BytesIO(), byte_range="9-1"
            )

    def test_gzip_by_content_encoding(self, run_context, stub_provider):
        stub_provider.objects["logs/a.gz"] = gzip.compress(b"unzipped")
        stub_provider.encodings["logs/a.gz"] = "gzip"
        sink = io.BytesIO()

        fetch_object(run_context, "test-bucket", "logs/a.gz", sink, decompress=None)

        assert sink.getvalue() == b"unzipped"
