"""Newline-delimited JSON-RPC transport over a duplex byte stream."""
import asyncio
import json
import logging
import sys
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from .utils.errors import FrameDecodeError, TransportClosedError

logger = logging.getLogger(__name__)

FRAME_DELIMITER = b"\n"
DEFAULT_READ_CHUNK_SIZE = 64 * 1024
DEFAULT_MAX_CONCURRENT_MESSAGES = 64
DEFAULT_MAX_FRAME_BYTES = 64 * 1024 * 1024

MessageHandler = Callable[[Any], Awaitable[Optional[Any]]]


class JsonCodec:
    """Encodes messages as single-line JSON frames and decodes them back.

    ``json.dumps`` escapes control characters inside strings, so an encoded
    frame never contains a raw newline except its terminating delimiter.
    """

    def __init__(self, ensure_ascii: bool = False):
        self.ensure_ascii = ensure_ascii

    def encode(self, message: Any) -> bytes:
        text = json.dumps(message, separators=(",", ":"), ensure_ascii=self.ensure_ascii)
        return text.encode("utf-8") + FRAME_DELIMITER

    def decode(self, frame: bytes) -> Any:
        try:
            return json.loads(frame.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise FrameDecodeError(f"Invalid JSON frame: {e}") from e


class FrameDecoder:
    """Accumulates stream bytes and splits them into complete frames."""

    def __init__(self, max_frame_bytes: Optional[int] = None):
        self.max_frame_bytes = max_frame_bytes
        self._buffer = bytearray()
        self._discarding = False

    @property
    def buffered(self) -> int:
        """Bytes received that do not yet form a complete frame."""
        return len(self._buffer)

    def feed(self, data: bytes) -> List[bytes]:
        """Add received bytes and return every frame they complete, in order."""
        frames: List[bytes] = []
        scan_from = len(self._buffer)
        self._buffer.extend(data)

        while True:
            index = self._buffer.find(FRAME_DELIMITER, scan_from)
            if index < 0:
                break
            frame = bytes(self._buffer[:index])
            del self._buffer[:index + 1]
            scan_from = 0

            if self._discarding:
                self._discarding = False
                continue
            frame = frame.strip()
            if not frame:
                continue
            if self.max_frame_bytes is not None and len(frame) > self.max_frame_bytes:
                logger.warning(f"Dropping frame of {len(frame)} bytes (limit {self.max_frame_bytes})")
                continue
            frames.append(frame)

        if self.max_frame_bytes is not None and len(self._buffer) > self.max_frame_bytes:
            logger.warning(
                f"Frame exceeds {self.max_frame_bytes} bytes, discarding until next delimiter"
            )
            self._buffer.clear()
            self._discarding = True

        return frames


class PendingRequests:
    """Request id to future correlation for requests awaiting a response.

    Each id has at most one outstanding future; it is removed when resolved,
    discarded by a caller that gave up, or failed when the transport closes.
    """

    def __init__(self):
        self._futures: Dict[Any, asyncio.Future] = {}

    def __len__(self) -> int:
        return len(self._futures)

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._futures

    def register(self, request_id: Any) -> asyncio.Future:
        if request_id in self._futures:
            raise ValueError(f"Request id already pending: {request_id}")
        future = asyncio.get_running_loop().create_future()
        self._futures[request_id] = future
        return future

    def resolve(self, request_id: Any, message: Any) -> bool:
        """Complete the future for ``request_id``; False if nobody is waiting."""
        future = self._futures.pop(request_id, None)
        if future is None or future.done():
            return False
        future.set_result(message)
        return True

    def discard(self, request_id: Any):
        self._futures.pop(request_id, None)

    def fail_all(self, exc: BaseException):
        futures, self._futures = self._futures, {}
        for future in futures.values():
            if not future.done():
                future.set_exception(exc)


class StreamTransport:
    """Owns a duplex byte stream and exchanges JSON-RPC frames over it.

    A dedicated read loop decodes frames and hands each message to
    ``handler`` on its own task, so a slow handler never stops the loop from
    draining the stream. Replies are written under a lock so that concurrent
    senders never interleave frames. End of stream or an I/O failure closes
    the transport for good.
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        handler: MessageHandler,
        codec: Optional[JsonCodec] = None,
        read_chunk_size: int = DEFAULT_READ_CHUNK_SIZE,
        max_concurrent_messages: int = DEFAULT_MAX_CONCURRENT_MESSAGES,
        max_frame_bytes: Optional[int] = DEFAULT_MAX_FRAME_BYTES,
        name: str = "mcp-stream",
    ):
        self.reader = reader
        self.writer = writer
        self.handler = handler
        self.codec = codec or JsonCodec()
        self.read_chunk_size = read_chunk_size
        self.max_frame_bytes = max_frame_bytes
        self.name = name
        self._write_lock = asyncio.Lock()
        self._dispatch_slots = asyncio.Semaphore(max_concurrent_messages)
        self._dispatch_tasks: Set[asyncio.Task] = set()
        self._read_task: Optional[asyncio.Task] = None
        self._closed = asyncio.Event()
        self._close_callbacks: List[Callable[[], None]] = []

    @classmethod
    def for_server(cls, reader, writer, server) -> "StreamTransport":
        """Transport feeding an ``McpServer``, sized by the server's settings."""
        settings = server.settings
        return cls(
            reader,
            writer,
            server.handle,
            read_chunk_size=settings.read_chunk_size,
            max_concurrent_messages=settings.max_concurrent_messages,
            max_frame_bytes=settings.max_frame_bytes,
            name="mcp-stream-server",
        )

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    @property
    def in_flight(self) -> int:
        """Messages received whose handling has not finished yet."""
        return len(self._dispatch_tasks)

    def on_close(self, callback: Callable[[], None]):
        """Run ``callback`` once when the transport closes."""
        if self.closed:
            callback()
        else:
            self._close_callbacks.append(callback)

    def start(self):
        """Start the read loop on the running event loop."""
        if self._read_task is not None:
            raise RuntimeError(f"Transport {self.name} already started")
        if self.closed:
            raise TransportClosedError(f"Transport {self.name} is closed")
        self._read_task = asyncio.create_task(self._read_loop(), name=f"{self.name}-reader")
        logger.info(f"Transport {self.name} started")

    async def send(self, message: Any):
        """Write one message as a complete frame."""
        data = self.codec.encode(message)
        async with self._write_lock:
            if self.closed:
                raise TransportClosedError(f"Transport {self.name} is closed")
            try:
                self.writer.write(data)
                await self.writer.drain()
            except (ConnectionError, OSError) as e:
                self._mark_closed()
                raise TransportClosedError(f"Write failed on {self.name}: {e}") from e
        logger.debug(f"Sent frame of {len(data)} bytes on {self.name}")

    async def close(self):
        """Close the stream. In-flight handlers finish but cannot reply."""
        self._mark_closed()
        if self._read_task is not None and not self._read_task.done():
            self._read_task.cancel()
            try:
                await self._read_task
            except asyncio.CancelledError:
                pass
        try:
            await self.writer.wait_closed()
        except (ConnectionError, OSError) as e:
            logger.debug(f"Ignoring error while closing {self.name}: {e}")

    async def wait_closed(self):
        await self._closed.wait()

    async def __aenter__(self) -> "StreamTransport":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _read_loop(self):
        decoder = FrameDecoder(self.max_frame_bytes)
        try:
            while True:
                chunk = await self.reader.read(self.read_chunk_size)
                if not chunk:
                    if decoder.buffered:
                        logger.warning(
                            f"Discarding {decoder.buffered} bytes of incomplete frame at end of stream"
                        )
                    logger.info(f"End of stream on {self.name}")
                    break
                for frame in decoder.feed(chunk):
                    await self._dispatch(frame)
        except (ConnectionError, OSError) as e:
            logger.warning(f"Read failed on {self.name}: {e}")
        finally:
            self._mark_closed()

    async def _dispatch(self, frame: bytes):
        try:
            message = self.codec.decode(frame)
        except FrameDecodeError as e:
            logger.warning(f"Dropping frame on {self.name}: {e}")
            return
        logger.debug(f"Received frame of {len(frame)} bytes on {self.name}")

        # Waits only when max_concurrent_messages handlers are already running.
        await self._dispatch_slots.acquire()
        task = asyncio.create_task(self._handle(message))
        self._dispatch_tasks.add(task)
        task.add_done_callback(self._dispatch_tasks.discard)

    async def _handle(self, message: Any):
        try:
            response = await self.handler(message)
            if response is not None:
                await self.send(response)
        except TransportClosedError:
            logger.debug(f"Dropping reply: transport {self.name} is closed")
        except Exception as e:
            logger.error(f"Error handling message on {self.name}: {e}", exc_info=True)
        finally:
            self._dispatch_slots.release()

    def _mark_closed(self):
        if self.closed:
            return
        self._closed.set()
        self.writer.close()
        callbacks, self._close_callbacks = self._close_callbacks, []
        for callback in callbacks:
            callback()
        logger.info(f"Transport {self.name} closed")


async def open_stdio_streams(stdin=None, stdout=None):
    """Wrap the process stdin/stdout pipes in asyncio streams."""
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader()
    await loop.connect_read_pipe(
        lambda: asyncio.StreamReaderProtocol(reader), stdin or sys.stdin
    )
    write_transport, write_protocol = await loop.connect_write_pipe(
        lambda: asyncio.StreamReaderProtocol(asyncio.StreamReader()), stdout or sys.stdout
    )
    writer = asyncio.StreamWriter(write_transport, write_protocol, reader, loop)
    return reader, writer


async def serve_stdio(server):
    """Serve ``server`` on stdin/stdout until the client closes the stream."""
    reader, writer = await open_stdio_streams()
    transport = StreamTransport.for_server(reader, writer, server)
    transport.start()
    await transport.wait_closed()
    await transport.close()


def run_stdio(server):
    """Process entry point: logs go to stderr, protocol frames to stdout."""
    logging.basicConfig(level=server.settings.log_level, stream=sys.stderr)
    logger.info(f"Starting {server.settings.server_name} on stdio")
    asyncio.run(serve_stdio(server))
