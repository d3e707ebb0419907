import socket

import pytest

from fake_server import LARGE_FILE, SMALL_FILE, FakeFTPServer


@pytest.fixture
def ftp_files():
    return {
        "/pub/sinclair/games/a/AlterEgo.tap.zip": SMALL_FILE,
        "/pub/big/image.iso": LARGE_FILE,
        "/empty.txt": b"",
    }


@pytest.fixture
def make_server(ftp_files):
    """Factory fixture: arranca servidores FTP falsos y los detiene al final."""
    servers = []

    def _make(**kwargs):
        kwargs.setdefault("files", ftp_files)
        server = FakeFTPServer(**kwargs).start()
        servers.append(server)
        return server

    yield _make

    for server in servers:
        server.stop()


@pytest.fixture
def ftp_server(make_server):
    return make_server()


@pytest.fixture
def unused_port():
    """A local port with nothing listening on it."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port


@pytest.fixture
def socket_pair():
    client, server = socket.socketpair()
    yield client, server
    client.close()
    server.close()
