import logging
import posixpath
import re
from typing import NamedTuple, Union
from urllib.parse import unquote, urlsplit

from ftpget.config import DEFAULT_FTP_PORT
from ftpget.errors import MalformedURLError, MalformedReplyError, PasvDecodeError

logger = logging.getLogger(__name__)

PASV_PATTERN = re.compile(r"(\d+),(\d+),(\d+),(\d+),(\d+),(\d+)")

RESPONSE_TYPES = {
    '1': 'preliminary',
    '2': 'success',
    '3': 'missing_info',
    '4': 'error',
    '5': 'error'
}


class Target(NamedTuple):
    """Where to fetch from: "host:port", remote directory and file name."""
    address: str
    remote_dir: str
    filename: str

    @property
    def host(self) -> str:
        return split_address(self.address)[0]

    @property
    def port(self) -> int:
        return split_address(self.address)[1]


class Reply(NamedTuple):
    code: int
    message: str
    is_continuation: bool

    @property
    def kind(self) -> str:
        return RESPONSE_TYPES.get(str(self.code)[0], 'unknown')

    def __str__(self):
        return f"[{self.code:03d}] {self.message}"


def split_address(address: str):
    """Split "host:port" into (host, port), removing IPv6 brackets."""
    host, _, port = address.rpartition(':')
    return host.strip('[]'), int(port)


def parse_url(locator: str, default_port: int = DEFAULT_FTP_PORT) -> Target:
    """
    Decodes a bare locator such as ``ftp.gnu.org/gnu/bash/bash-4.2.tar.gz``.

    The directory keeps its leading and trailing slash so it can be sent
    verbatim with CWD; the port falls back to ``default_port``.
    Percent-escapes in the path are decoded.
    """
    try:
        parts = urlsplit("ftp://" + locator.strip())
        port = parts.port
    except ValueError as e:
        raise MalformedURLError(f"invalid URL: {locator}") from e

    netloc = parts.netloc.rpartition('@')[2]
    if not parts.hostname or not parts.path:
        raise MalformedURLError(f"invalid URL: {locator}")

    path = unquote(parts.path)
    filename = posixpath.basename(path)
    if not filename:
        raise MalformedURLError(f"invalid URL, no file name: {locator}")

    address = netloc if port is not None else f"{netloc.rstrip(':')}:{default_port}"
    remote_dir = path[:len(path) - len(filename)]
    return Target(address, remote_dir, filename)


class Parser:
    def __init__(self):
        pass

    def parse_reply(self, line: Union[bytes, str]) -> Reply:
        """Parses a single control line ``DDD<sep><text>\\r\\n``."""
        if isinstance(line, bytes):
            line = line.decode('utf-8', errors='replace')
        data = line.rstrip('\r\n')

        if len(data) < 4:
            logger.error("Invalid FTP reply, too short: %r", line)
            raise MalformedReplyError(f"Malformed reply: {line!r}")

        code = data[:3]
        if not (code.isascii() and code.isdigit()):
            logger.error("Invalid FTP reply format: %r (code=%s)", line, code)
            raise MalformedReplyError(f"Malformed reply: {line!r}")

        reply = Reply(int(code), data[4:], data[3] == '-')
        logger.debug("Parsed reply: code=%s, continuation=%s, message=%s",
                     reply.code, reply.is_continuation, reply.message[:50])
        return reply

    def parse_pasv_response(self, message: str) -> str:
        """Parses the PASV response and returns "address:port"."""
        match = PASV_PATTERN.search(message)
        if match is None:
            logger.error("Failed to parse PASV response: %s", message)
            raise PasvDecodeError(f"Cannot handle server response: {message}")

        numbers = [int(n) for n in match.groups()]
        if any(n > 255 for n in numbers):
            logger.error("PASV response out of range: %s", message)
            raise PasvDecodeError(f"Cannot handle server response: {message}")

        ip = '.'.join(str(n) for n in numbers[:4])
        port = (numbers[4] << 8) + numbers[5]
        logger.debug("PASV parsed: %s:%s", ip, port)
        return f"{ip}:{port}"
