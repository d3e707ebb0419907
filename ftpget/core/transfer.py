import enum
import logging
import queue
import threading
from typing import Iterator, Optional, Tuple

from ftpget.config import FTPGetConfig
from ftpget.core.commands import ClientCommandHandler
from ftpget.core.connection import ControlConnectionManager
from ftpget.core.data_connection import DataConnectionManager
from ftpget.core.parser import Target, parse_url
from ftpget.errors import TransportError

logger = logging.getLogger(__name__)

TRACE_LOGGER_NAME = "ftpget.trace"

# marks the end of the status and error streams
_CLOSED = object()


class Status(enum.Enum):
    STARTED = "STARTED"
    COMPLETED = "COMPLETED"
    ABORTED = "ABORTED"
    ERROR = "ERROR"

    @property
    def terminal(self) -> bool:
        return self is not Status.STARTED


class Control(enum.Enum):
    ABORT = "ABORT"


class Transfer:
    """
    Una descarga asíncrona en curso.

    El hilo de copia publica STARTED y después exactamente un estado terminal
    (COMPLETED, ABORTED o ERROR) en el stream de estados, que luego se cierra.
    ABORT sólo se revisa entre lecturas: una lectura en curso no se interrumpe.

    Campos principales:
        - control (ControlConnectionManager): conexión de control, abierta hasta el final de la copia.
        - data (DataConnectionManager): conexión de datos PASV.
        - bytes_transferred (int): bytes escritos en el sink hasta ahora.
    """

    def __init__(self, control: ControlConnectionManager, data: DataConnectionManager, sink, chunk_size: int):
        self.control = control
        self.data = data
        self.sink = sink
        self.chunk_size = chunk_size
        self.bytes_transferred = 0
        self.status: Optional[Status] = None

        self._status_stream = queue.Queue()
        self._control_stream = queue.Queue()
        self._error_stream = queue.Queue()
        self._thread = threading.Thread(target=self._run, daemon=True)

    # ---------------- Métodos Internos ----------------
    def _start(self):
        self._thread.start()

    def _publish(self, status: Status):
        self.status = status
        self._status_stream.put(status)

    def _fail(self, error: Exception):
        logger.error("Transfer from %s:%s failed: %s", self.data.ip, self.data.port, error)
        self._publish(Status.ERROR)
        self._error_stream.put(error)

    def _abort_requested(self) -> bool:
        try:
            return self._control_stream.get_nowait() is Control.ABORT
        except queue.Empty:
            return False

    def _run(self):
        self._publish(Status.STARTED)
        try:
            while True:
                if self._abort_requested():
                    logger.info("Transfer aborted after %d bytes", self.bytes_transferred)
                    self._publish(Status.ABORTED)
                    break

                try:
                    chunk = self.data.receive_chunk(self.chunk_size)
                except TransportError as e:
                    self._fail(e)
                    break

                if not chunk:
                    logger.info("Transfer completed, %d bytes", self.bytes_transferred)
                    self._publish(Status.COMPLETED)
                    break

                try:
                    self.sink.write(chunk)
                except Exception as e:
                    self._fail(e)
                    break
                self.bytes_transferred += len(chunk)
        finally:
            self.data.close()
            self.control.disconnect()
            self._status_stream.put(_CLOSED)
            self._error_stream.put(_CLOSED)

    @staticmethod
    def _next(stream: queue.Queue, timeout: Optional[float]):
        item = stream.get(timeout=timeout)
        if item is _CLOSED:
            # keep the stream closed for later readers
            stream.put(_CLOSED)
            return None
        return item

    # --------------- Métodos Públicos --------------------------
    def get_status(self, timeout: Optional[float] = None) -> Optional[Status]:
        """
        Next value of the status stream, or None once it is closed.

        Raises queue.Empty if nothing arrives within ``timeout`` seconds.
        A terminal status is published before the sockets are closed; wait
        for the stream to close (None) or call wait() before relying on
        closed connections.
        """
        return self._next(self._status_stream, timeout)

    def statuses(self) -> Iterator[Status]:
        while (status := self.get_status()) is not None:
            yield status

    def get_error(self, timeout: Optional[float] = None) -> Optional[Exception]:
        """Next error of the error stream, or None once it is closed."""
        return self._next(self._error_stream, timeout)

    def send(self, control: Control):
        self._control_stream.put(control)

    def abort(self):
        self.send(Control.ABORT)

    def done(self) -> bool:
        return not self._thread.is_alive() and self.status is not None and self.status.terminal

    def wait(self, timeout: Optional[float] = None) -> Optional[Status]:
        """Joins the copy thread and returns the terminal status (None on timeout)."""
        self._thread.join(timeout)
        return self.status if self.done() else None

    def __repr__(self):
        return f"Transfer(data={self.data.ip}:{self.data.port}, status={self.status}, bytes={self.bytes_transferred})"


def _trace_logger(config: FTPGetConfig, trace: Optional[logging.Logger]) -> Optional[logging.Logger]:
    if trace is not None:
        return trace
    if config.verbose:
        return logging.getLogger(TRACE_LOGGER_NAME)
    return None


def _open(target: Target, config: FTPGetConfig,
          trace: Optional[logging.Logger]) -> Tuple[ControlConnectionManager, DataConnectionManager]:
    control = ControlConnectionManager(target.host, target.port, timeout=config.timeout)
    control.connect()
    handler = ClientCommandHandler(control, config=config, trace=trace)
    try:
        data = handler.retrieve(target)
    except Exception:
        control.disconnect()
        raise
    return control, data


def get(locator: str, sink, config: Optional[FTPGetConfig] = None,
        trace: Optional[logging.Logger] = None) -> None:
    """
    Fetch a file synchronously into ``sink`` (any object with ``write(bytes)``).

    ``locator`` has no scheme, e.g. ``ftp.gnu.org/gnu/bash/bash-4.2.tar.gz``.
    Returns once the server closes the data connection; the first error raises.
    Removing a partially written destination is left to the caller.
    """
    config = config or FTPGetConfig()
    target = parse_url(locator, config.default_port)
    control, data = _open(target, config, _trace_logger(config, trace))
    try:
        data.receive_into(sink, config.chunk_size)
    finally:
        data.close()
        control.disconnect()


def get_async(locator: str, sink, config: Optional[FTPGetConfig] = None,
              trace: Optional[logging.Logger] = None) -> Transfer:
    """
    Fetch a file asynchronously and return a Transfer to follow and control it.

    Setup errors (bad locator, refused connection, unexpected reply codes)
    raise here. Errors during the copy arrive on the Transfer's error stream
    together with an ERROR status.

    The transfer state diagram is::

        STARTED --> COMPLETED
                |
                --> ABORTED
                |
                --> ERROR (drain the error stream)
    """
    config = config or FTPGetConfig()
    target = parse_url(locator, config.default_port)
    control, data = _open(target, config, _trace_logger(config, trace))
    transfer = Transfer(control, data, sink, config.chunk_size)
    transfer._start()
    return transfer
