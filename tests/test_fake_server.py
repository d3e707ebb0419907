import time

from fake_server import FakeFTPServer


def test_stop_is_prompt():
    server = FakeFTPServer().start()
    started = time.monotonic()
    server.stop()
    assert time.monotonic() - started < 1.0
