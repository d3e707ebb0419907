"""Errores del cliente ftpget."""


class FTPGetError(Exception):
    """Base class for every error raised by ftpget."""


class MalformedURLError(FTPGetError, ValueError):
    """The locator is not of the form host[:port]/path/filename."""


class TransportError(FTPGetError, ConnectionError):
    """Dial, read or write failure on the control or data connection."""


class MalformedReplyError(FTPGetError, ValueError):
    """A control connection line is not a valid FTP reply."""


class PasvDecodeError(FTPGetError, ValueError):
    """The 227 reply text does not carry a usable h1,h2,h3,h4,p1,p2 tuple."""


class ProtocolError(FTPGetError):
    """The server answered with a code the current step does not accept."""

    def __init__(self, code: int, message: str):
        super().__init__(code, message)
        self.code = code
        self.message = message

    def __str__(self):
        return f"[{self.code:03d}] {self.message}"
