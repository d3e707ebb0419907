import socket
import logging
from typing import Optional

from ftpget.core.parser import Parser, Reply
from ftpget.errors import TransportError

logger = logging.getLogger(__name__)


class ControlConnectionManager:
    def __init__(self, host: str, port: int, timeout: Optional[float] = None, parser: Optional[Parser] = None):
        self.host = host
        self.port = port
        self.socket: socket.socket = None
        self.timeout = timeout
        self.parser = parser or Parser()
        self._reader = None
        self._closed = False

    def connect(self):
        if self.socket is not None:
            raise RuntimeError("Connection already established.")
        try:
            logger.info("Connecting to %s:%s (timeout=%s)", self.host, self.port, self.timeout)
            sock = socket.create_connection((self.host, self.port), timeout=self.timeout)
        except OSError as e:
            logger.error("Failed to connect to %s:%s - %s", self.host, self.port, e)
            raise TransportError(f"Failed to connect to {self.host}:{self.port} - {e}") from e
        self.adopt(sock)
        logger.info("Connected to %s:%s", self.host, self.port)

    def adopt(self, sock: socket.socket):
        """Use an already connected socket as the control connection."""
        if self.socket is not None:
            raise RuntimeError("Connection already established.")
        self.socket = sock
        self._reader = sock.makefile('rb')
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def disconnect(self):
        """Closes the control connection. Calling it twice is a no-op."""
        if self.socket is None or self._closed:
            return
        self._closed = True
        logger.info("Closing connection to %s:%s", self.host, self.port)
        try:
            self.socket.shutdown(socket.SHUT_RDWR)
        except OSError:
            # the peer may already be gone
            pass
        self._reader.close()
        self.socket.close()
        logger.debug("Disconnected from %s:%s", self.host, self.port)

    def _ensure_open(self):
        if self.socket is None:
            raise RuntimeError("No connection established.")
        if self._closed:
            raise TransportError(f"Control connection to {self.host}:{self.port} is closed")

    def send_command(self, command: str):
        self._ensure_open()
        if not command.endswith('\r\n'):
            command += '\r\n'
        logger.debug("SEND: %s", command.strip())
        try:
            self.socket.sendall(command.encode('ascii', errors='replace'))
        except OSError as e:
            raise TransportError(f"Failed to send command to {self.host}:{self.port} - {e}") from e

    def read_reply(self) -> Reply:
        """Reads one line from the control connection and parses it."""
        self._ensure_open()
        try:
            line = self._reader.readline()
        except OSError as e:
            raise TransportError(f"Failed to read reply from {self.host}:{self.port} - {e}") from e
        if not line:
            raise TransportError(f"Server {self.host}:{self.port} closed connection while reading reply")
        if not line.endswith(b'\n'):
            raise TransportError(f"Server {self.host}:{self.port} closed connection in the middle of a reply: {line!r}")
        logger.debug("RECV: %s", line.rstrip(b'\r\n'))
        return self.parser.parse_reply(line)
