import logging
import threading
from dataclasses import dataclass
from queue import Queue
from typing import BinaryIO, Callable, Optional, Union

logger = logging.getLogger(__name__)

# receives (stream name, raw line bytes) for every line, in order
LineSink = Callable[[str, bytes], None]


@dataclass(frozen=True)
class Data:
    line: bytes


@dataclass(frozen=True)
class EndOfStream:
    pass


@dataclass(frozen=True)
class TransientError:
    error: OSError


ReadOutcome = Union[Data, EndOfStream, TransientError]


def read_line(stream: BinaryIO) -> ReadOutcome:
    try:
        line = stream.readline()
    except OSError as e:
        return TransientError(e)
    if not line:
        return EndOfStream()
    return Data(line)


class StreamDrainer:
    """
    Drains one pipe on its own thread.

    Every line is logged (trimmed) and appended to a private buffer (raw).
    The buffer only leaves the thread through a one-slot queue once the pipe
    hits end-of-stream, so collect() can never observe a partial capture.
    """

    def __init__(self, name: str, stream: BinaryIO, sink: Optional[LineSink] = None):
        self.name = name
        self._stream = stream
        self._sink = sink
        self._handoff: Queue = Queue(maxsize=1)
        self._result: Union[bytes, Exception, None] = None
        self._thread = threading.Thread(target=self._run, name=f"drain-{name}", daemon=True)

    def start(self) -> "StreamDrainer":
        self._thread.start()
        return self

    def _run(self):
        buf = bytearray()
        try:
            self._drain(buf)
        except Exception as e:
            # keep the child unblocked, then surface the failure from collect()
            self._discard()
            self._handoff.put(e)
            return
        self._handoff.put(bytes(buf))

    def _drain(self, buf: bytearray):
        while True:
            match read_line(self._stream):
                case EndOfStream():
                    break
                case TransientError(error=err):
                    logger.debug("read error: %s", err, extra={"action": self.name})
                case Data(line=line):
                    logger.debug("%s", line.decode(errors="replace").rstrip(), extra={"action": self.name})
                    if self._sink is not None:
                        self._sink(self.name, line)
                    buf.extend(line)
        self._stream.close()

    def _discard(self):
        while True:
            try:
                if not self._stream.read(65536):
                    break
            except OSError:
                continue
            except ValueError:
                # already closed
                break
        self._stream.close()

    def collect(self) -> bytes:
        """Block until the pipe is fully drained and return everything read."""
        if self._result is None:
            self._result = self._handoff.get()
            self._thread.join()
        if isinstance(self._result, Exception):
            raise self._result
        return self._result


def drain_pair(proc, sink: Optional[LineSink] = None) -> tuple[StreamDrainer, StreamDrainer]:
    """Start one drainer for each of proc.stdout and proc.stderr."""
    out = StreamDrainer("stdout", proc.stdout, sink).start()
    err = StreamDrainer("stderr", proc.stderr, sink).start()
    return out, err
