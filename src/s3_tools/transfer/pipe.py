"""Backpressure-aware streaming from an object body to a sink.

A pump thread reads the source in fixed-size chunks and puts them on a
``BoundedChannel``; the calling thread takes them off, decompresses them
when the content is gzip, and writes them to the sink. When the sink is
slow the channel fills up and the pump blocks, so at most
``channel_depth`` chunks are ever held in memory.

Writing to a closed stdout (``s3-tools get ... --stdout | head``) is not a
failure: the transfer ends early and quietly. Every other sink or source
fault raises ``TransferError``.
"""

import threading
import zlib
from dataclasses import dataclass, field
from typing import Any, BinaryIO, Callable, Optional

from s3_tools.core import get_logger, settings
from s3_tools.core.context import RunContext
from s3_tools.core.exceptions import TransferError, ValidationError
from s3_tools.core.formatting import format_bytes

from .channel import BoundedChannel, ChannelClosed

logger = get_logger(__name__)

GZIP_MAGIC = b"\x1f\x8b"

_EOF = object()


@dataclass
class _SourceFailure:
    error: BaseException


class _EarlyTermination(Exception):
    pass


@dataclass
class TransferSession:
    """State of one source-to-sink transfer."""

    source: Any
    sink: Any
    bytes_received: int = 0
    bytes_transferred: int = 0
    decompressing: bool = False
    terminated_early: bool = False
    completed: bool = False
    channel: Optional[BoundedChannel] = field(default=None, repr=False)

    @property
    def backpressured(self) -> bool:
        """True while the source is paused waiting for the sink."""
        return self.channel is not None and self.channel.backpressured

    def describe(self) -> str:
        line = f"Transferred {format_bytes(self.bytes_transferred)}"
        if self.decompressing:
            line += f" ({format_bytes(self.bytes_received)} compressed)"
        return line


class GzipDecoder:
    """Incremental gzip decoder that also handles concatenated members."""

    def __init__(self):
        self._decompressor = zlib.decompressobj(zlib.MAX_WBITS | 16)
        self._in_member = False

    def decode(self, chunk: bytes) -> bytes:
        output = []
        data = chunk
        while data:
            self._in_member = True
            output.append(self._decompressor.decompress(data))
            if self._decompressor.eof:
                data = self._decompressor.unused_data
                self._decompressor = zlib.decompressobj(zlib.MAX_WBITS | 16)
                self._in_member = False
            else:
                data = b""
        return b"".join(output)

    def flush(self) -> bytes:
        """Return the remaining output.

        Raises:
            zlib.error: If the last member ended before its end-of-stream marker
        """
        output = self._decompressor.flush()
        if self._in_member:
            raise zlib.error("gzip stream ended before end-of-stream marker")
        return output


def is_gzip(content_encoding: Optional[str], first_chunk: bytes) -> bool:
    """Detect gzip from the Content-Encoding header or the magic bytes."""
    if content_encoding and "gzip" in content_encoding.lower():
        return True
    return first_chunk[:2] == GZIP_MAGIC


class StreamingTransferPipe:
    """Moves bytes from a readable source to a writable sink."""

    def __init__(
        self,
        context: RunContext,
        chunk_size: int = settings.chunk_size,
        channel_depth: int = settings.channel_depth,
        decompress: Optional[bool] = None,
    ):
        """Initialize the pipe.

        Args:
            context: Run context of the invocation
            chunk_size: Bytes requested from the source per read
            channel_depth: Chunks that may wait between source and sink
            decompress: True to gunzip, False to copy verbatim, None to detect
        """
        if chunk_size < 1:
            raise ValidationError(f"chunk_size must be positive, got: {chunk_size}")
        if channel_depth < 1:
            raise ValidationError(
                f"channel_depth must be positive, got: {channel_depth}"
            )

        self.context = context
        self.chunk_size = chunk_size
        self.channel_depth = channel_depth
        self.decompress = decompress

    def _pump(self, source: BinaryIO, channel: BoundedChannel) -> None:
        try:
            while True:
                chunk = source.read(self.chunk_size)
                if not chunk:
                    break
                channel.put(chunk)
            channel.put(_EOF)
        except ChannelClosed:
            return
        except Exception as e:
            # Handed to the consuming thread, which raises it
            try:
                channel.put(_SourceFailure(e))
            except ChannelClosed:
                pass

    def run(
        self,
        source: BinaryIO,
        sink: BinaryIO,
        content_encoding: Optional[str] = None,
        sink_is_stdout: bool = False,
        on_progress: Optional[Callable[[TransferSession, int], None]] = None,
    ) -> TransferSession:
        """Stream ``source`` into ``sink`` until end of data.

        Args:
            source: Object with ``read(n)`` returning bytes, ``b""`` at the end
            sink: Object with ``write(bytes)`` and ``flush()``
            content_encoding: Content-Encoding reported for the source
            sink_is_stdout: Treat a broken pipe on the sink as early termination
            on_progress: Called with the session and the bytes just written;
                defaults to throttled progress lines on the run context

        Returns:
            TransferSession with the final counters

        Raises:
            TransferError: If reading the source or writing the sink fails
        """
        channel = BoundedChannel(self.channel_depth)
        session = TransferSession(source=source, sink=sink, channel=channel)
        reporter = None

        if on_progress is None:
            reporter = self.context.reporter(
                lambda s: f"{s.describe()} in {self.context.elapsed()}"
            )

            def on_progress(s: TransferSession, written: int) -> None:
                reporter.schedule(s)

        pump = threading.Thread(
            target=self._pump, args=(source, channel), name="transfer-pump", daemon=True
        )
        pump.start()

        decoder: Optional[GzipDecoder] = None
        first_chunk = True

        try:
            while True:
                item = channel.get()
                if item is _EOF:
                    break
                if isinstance(item, _SourceFailure):
                    error_msg = f"Error reading object stream: {item.error}"
                    logger.error(error_msg, error=str(item.error))
                    raise TransferError(error_msg) from item.error

                session.bytes_received += len(item)

                if first_chunk:
                    first_chunk = False
                    if self.decompress or (
                        self.decompress is None and is_gzip(content_encoding, item)
                    ):
                        decoder = GzipDecoder()
                        session.decompressing = True

                data = self._decode(decoder, item)
                self._write(sink, data, session, sink_is_stdout)
                on_progress(session, len(data))

            if decoder is not None:
                self._write(sink, self._flush_decoder(decoder), session, sink_is_stdout)
            self._flush(sink, sink_is_stdout)
            session.completed = True

        except _EarlyTermination:
            session.terminated_early = True
            logger.info(
                "Sink closed early, transfer stopped",
                bytes_transferred=session.bytes_transferred,
            )
        finally:
            channel.close()
            pump.join()
            if reporter is not None:
                reporter.halt(session)

        logger.info(
            "Transfer finished",
            bytes_received=session.bytes_received,
            bytes_transferred=session.bytes_transferred,
            decompressed=session.decompressing,
            backpressure_events=channel.backpressure_events,
            terminated_early=session.terminated_early,
        )
        return session

    @staticmethod
    def _decode(decoder: Optional[GzipDecoder], chunk: bytes) -> bytes:
        if decoder is None:
            return chunk
        try:
            return decoder.decode(chunk)
        except zlib.error as e:
            raise TransferError(f"Error decompressing object stream: {e}") from e

    @staticmethod
    def _flush_decoder(decoder: GzipDecoder) -> bytes:
        try:
            return decoder.flush()
        except zlib.error as e:
            raise TransferError(f"Error decompressing object stream: {e}") from e

    @staticmethod
    def _write(
        sink: BinaryIO, data: bytes, session: TransferSession, sink_is_stdout: bool
    ) -> None:
        if not data:
            return
        try:
            sink.write(data)
        except BrokenPipeError as e:
            if sink_is_stdout:
                raise _EarlyTermination() from e
            raise TransferError(f"Error writing output: {e}") from e
        except OSError as e:
            error_msg = f"Error writing output: {e}"
            logger.error(error_msg, error=str(e))
            raise TransferError(error_msg) from e

        session.bytes_transferred += len(data)

    @staticmethod
    def _flush(sink: BinaryIO, sink_is_stdout: bool) -> None:
        try:
            sink.flush()
        except BrokenPipeError as e:
            if sink_is_stdout:
                raise _EarlyTermination() from e
            raise TransferError(f"Error writing output: {e}") from e
        except OSError as e:
            raise TransferError(f"Error writing output: {e}") from e
