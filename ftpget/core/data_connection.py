import socket
import logging
from typing import Optional

from ftpget.errors import TransportError

logger = logging.getLogger(__name__)


class DataConnectionManager:
    def __init__(self, ip: str, port: int, timeout: Optional[float] = None):
        """
        Maneja la conexión de datos PASV del cliente FTP.
        """
        self.ip = ip
        self.port = port
        self.timeout = timeout
        self.data_socket: Optional[socket.socket] = None
        self._closed = False

    def connect(self):
        """
        Establece la conexión TCP con el servidor en el canal de datos.
        """
        try:
            self.data_socket = socket.create_connection((self.ip, self.port), timeout=self.timeout)
        except OSError as e:
            logger.error("[DATA] Failed to connect to %s:%s - %s", self.ip, self.port, e)
            raise TransportError(f"Failed to open data connection to {self.ip}:{self.port} - {e}") from e
        logger.debug("[DATA] Connected to %s:%s", self.ip, self.port)

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self):
        """
        Cierra la conexión de datos. Es idempotente.
        """
        if self.data_socket is None or self._closed:
            return
        self._closed = True
        self.data_socket.close()
        logger.debug("[DATA] Disconnected from %s:%s", self.ip, self.port)

    def receive_chunk(self, size: int) -> bytes:
        """
        Lee hasta `size` bytes. Devuelve b'' cuando el servidor cierra el canal.
        """
        try:
            return self.data_socket.recv(size)
        except OSError as e:
            raise TransportError(f"Failed to read from data connection {self.ip}:{self.port} - {e}") from e

    def receive_into(self, sink, chunk_size: int) -> int:
        """
        Copia todo el canal de datos en `sink` hasta EOF y devuelve los bytes copiados.
        """
        total = 0
        while chunk := self.receive_chunk(chunk_size):
            sink.write(chunk)
            total += len(chunk)
        logger.debug("[DATA] Received %d bytes from %s:%s", total, self.ip, self.port)
        return total
