"""
ftpget: fetch a single file from an FTP server with an anonymous login
and a passive-mode data connection.
"""

from ftpget.config import FTPGetConfig
from ftpget.core import Control, Status, Transfer, get, get_async, parse_url
from ftpget.errors import (
    FTPGetError,
    MalformedReplyError,
    MalformedURLError,
    PasvDecodeError,
    ProtocolError,
    TransportError,
)

__version__ = "0.1.0"

__all__ = [
    "FTPGetConfig",
    "Control",
    "Status",
    "Transfer",
    "get",
    "get_async",
    "parse_url",
    "FTPGetError",
    "MalformedURLError",
    "TransportError",
    "MalformedReplyError",
    "PasvDecodeError",
    "ProtocolError",
]
