import os
from typing import Optional

DEFAULT_FTP_PORT = 21
CHUNK_SIZE = 32 * 1024
ANONYMOUS_USER = "anonymous"
ANONYMOUS_PASSWORD = "ftpget@-"


def _env_flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class FTPGetConfig:
    """
    Parámetros del cliente.

    Los valores por defecto reproducen el comportamiento clásico: puerto 21,
    chunks de 32 KiB, login anónimo y sin timeout en los sockets.
    """

    def __init__(self, default_port: int = DEFAULT_FTP_PORT, chunk_size: int = CHUNK_SIZE,
                 anonymous_user: str = ANONYMOUS_USER, anonymous_password: str = ANONYMOUS_PASSWORD,
                 timeout: Optional[float] = None, verbose: bool = False):
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self.default_port = default_port
        self.chunk_size = chunk_size
        self.anonymous_user = anonymous_user
        self.anonymous_password = anonymous_password
        self.timeout = timeout
        self.verbose = verbose

    @classmethod
    def from_env(cls) -> "FTPGetConfig":
        """Build a config from FTPGET_* environment variables."""
        timeout = os.getenv("FTPGET_TIMEOUT")
        return cls(
            chunk_size=int(os.getenv("FTPGET_CHUNK_SIZE", str(CHUNK_SIZE))),
            anonymous_password=os.getenv("FTPGET_ANON_PASSWORD", ANONYMOUS_PASSWORD),
            timeout=float(timeout) if timeout else None,
            verbose=_env_flag("FTPGET_VERBOSE"),
        )

    def __repr__(self):
        return (f"FTPGetConfig(default_port={self.default_port}, chunk_size={self.chunk_size}, "
                f"timeout={self.timeout}, verbose={self.verbose})")
