"""In-process FTP server used by the test suite."""

import logging
import os
import posixpath
import socket
import threading
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

SMALL_FILE = os.urandom(13933)
LARGE_FILE = os.urandom(4 * 1024 * 1024)


class ServerSession:
    """Estado de sesión de un cliente conectado al servidor de pruebas."""

    def __init__(self, client_address):
        self.client_address = client_address
        self.username = None
        self.authenticated = False
        self.current_directory = "/"
        self.data_socket: Optional[socket.socket] = None

    def send_response(self, client_socket: socket.socket, code: int, message: str, sep: str = " "):
        line = f"{code}{sep}{message}\r\n"
        try:
            client_socket.sendall(line.encode('utf-8'))
            logger.debug("Sent response to %s: %s", self.client_address, line.strip())
        except OSError:
            logger.debug("Client %s gone, dropped response %s", self.client_address, line.strip())

    def cleanup_pasv(self):
        if self.data_socket:
            self.data_socket.close()
        self.data_socket = None


class FakeFTPServer:
    """
    Servidor FTP mínimo en un hilo, sirviendo archivos desde un dict.

    Opciones:
        - files: {"/pub/a.bin": b"..."}
        - require_password: USER responde 331 (True) o 230 (False).
        - greeting_code / greeting_lines: banner inicial, con líneas de continuación opcionales.
        - pasv_message: texto del 227 en lugar del real.
        - gate / gate_after: RETR envía `gate_after` bytes y espera a que `gate` se active.
    """

    def __init__(self, files: Optional[Dict[str, bytes]] = None, require_password: bool = True,
                 greeting_code: int = 220, greeting_lines: Optional[List[str]] = None,
                 pasv_message: Optional[str] = None, gate: Optional[threading.Event] = None,
                 gate_after: int = 0):
        self.files = files or {}
        self.require_password = require_password
        self.greeting_code = greeting_code
        self.greeting_lines = greeting_lines or []
        self.pasv_message = pasv_message
        self.gate = gate
        self.gate_after = gate_after

        self.commands: List[str] = []
        self.client_closed = threading.Event()
        self.handlers = {
            "USER": self.handle_user,
            "PASS": self.handle_pass,
            "CWD": self.handle_cwd,
            "TYPE": self.handle_type,
            "PASV": self.handle_pasv,
            "RETR": self.handle_retr,
            "QUIT": self.handle_quit,
        }
        self._server_sock: Optional[socket.socket] = None
        self._threads: List[threading.Thread] = []

    # ----------------- lifecycle -----------------
    def start(self) -> "FakeFTPServer":
        self._server_sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._server_sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._server_sock.bind(("127.0.0.1", 0))
        self._server_sock.listen(5)
        t = threading.Thread(target=self._accept_loop, daemon=True)
        t.start()
        self._threads.append(t)
        return self

    def stop(self):
        if self.gate is not None:
            self.gate.set()
        try:
            # wakes the thread blocked in accept()
            self._server_sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        self._server_sock.close()
        for t in list(self._threads):
            t.join(timeout=5)

    @property
    def port(self) -> int:
        return self._server_sock.getsockname()[1]

    def url(self, path: str) -> str:
        return f"127.0.0.1:{self.port}{path}"

    def _accept_loop(self):
        while True:
            try:
                client_sock, client_addr = self._server_sock.accept()
            except OSError:
                break
            t = threading.Thread(target=self.client_handler, args=(client_sock, client_addr), daemon=True)
            t.start()
            self._threads.append(t)

    # ----------------- dispatch -----------------
    def client_handler(self, client_socket: socket.socket, client_address):
        session = ServerSession(client_address)
        reader = client_socket.makefile('rb')
        try:
            for line in self.greeting_lines:
                session.send_response(client_socket, int(line[:3]), line[4:], sep=line[3])
            session.send_response(client_socket, self.greeting_code, "Service ready")
            while True:
                raw = reader.readline()
                if not raw:
                    break
                line = raw.decode('utf-8', errors='replace').strip()
                if not line:
                    continue
                self.commands.append(line)
                name, _, arg = line.partition(' ')
                handler = self.handlers.get(name.upper())
                if handler:
                    handler(arg, client_socket, session)
                else:
                    session.send_response(client_socket, 502, f"Command '{name}' not implemented")
        except OSError:
            logger.debug("Control connection with %s dropped", client_address)
        finally:
            session.cleanup_pasv()
            reader.close()
            client_socket.close()
            self.client_closed.set()

    # ----------------- handlers -----------------
    def handle_user(self, arg, client_socket, session):
        session.username = arg
        if self.require_password:
            session.send_response(client_socket, 331, "User name okay, need password")
        else:
            session.authenticated = True
            session.send_response(client_socket, 230, "User logged in")

    def handle_pass(self, arg, client_socket, session):
        if not session.username:
            session.send_response(client_socket, 503, "Login with USER first")
            return
        session.authenticated = True
        session.send_response(client_socket, 230, "User logged in successfully")

    def _directories(self):
        dirs = {"/"}
        for path in self.files:
            parent = posixpath.dirname(path)
            while parent not in dirs:
                dirs.add(parent)
                parent = posixpath.dirname(parent)
        return dirs

    def handle_cwd(self, arg, client_socket, session):
        if not session.authenticated:
            session.send_response(client_socket, 530, "Not logged in")
            return
        new_dir = posixpath.normpath(posixpath.join(session.current_directory, arg))
        if new_dir in self._directories():
            session.current_directory = new_dir
            session.send_response(client_socket, 250, f'Directory changed to "{new_dir}"')
        else:
            session.send_response(client_socket, 550, "Failed to change directory")

    def handle_type(self, arg, client_socket, session):
        if arg.upper() in ("A", "I"):
            session.send_response(client_socket, 200, f"Type set to {arg.upper()}")
        else:
            session.send_response(client_socket, 504, "Type not implemented")

    def handle_pasv(self, arg, client_socket, session):
        session.cleanup_pasv()
        data_socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        data_socket.bind(("127.0.0.1", 0))
        data_socket.listen(1)
        data_socket.settimeout(5)
        session.data_socket = data_socket
        data_port = data_socket.getsockname()[1]
        message = self.pasv_message or f"Entering Passive Mode (127,0,0,1,{data_port // 256},{data_port % 256})."
        session.send_response(client_socket, 227, message)

    def handle_retr(self, arg, client_socket, session):
        if session.data_socket is None:
            session.send_response(client_socket, 425, "Use PASV first")
            return
        path = posixpath.join(session.current_directory, arg)
        if path not in self.files:
            session.send_response(client_socket, 550, f"{arg}: No such file or directory")
            session.cleanup_pasv()
            return

        try:
            data_conn, _ = session.data_socket.accept()
        except OSError:
            session.send_response(client_socket, 425, "Can't open data connection")
            session.cleanup_pasv()
            return

        payload = self.files[path]
        session.send_response(client_socket, 150, f"Opening BINARY mode data connection for {arg} ({len(payload)} bytes)")
        try:
            if self.gate is not None:
                data_conn.sendall(payload[:self.gate_after])
                self.gate.wait(timeout=10)
                data_conn.sendall(payload[self.gate_after:])
            else:
                data_conn.sendall(payload)
        except OSError:
            logger.debug("Data connection closed by client during RETR %s", arg)
            session.send_response(client_socket, 426, "Connection closed; transfer aborted")
        else:
            session.send_response(client_socket, 226, "Transfer complete")
        finally:
            data_conn.close()
            session.cleanup_pasv()

    def handle_quit(self, arg, client_socket, session):
        session.send_response(client_socket, 221, "Goodbye")
