import logging
from typing import Iterable, Optional

from ftpget.config import FTPGetConfig
from ftpget.core.connection import ControlConnectionManager
from ftpget.core.data_connection import DataConnectionManager
from ftpget.core.parser import Parser, Reply, Target, split_address
from ftpget.errors import ProtocolError

logger = logging.getLogger(__name__)


class Step:
    """One request/response exchange on the control connection."""

    def __init__(self, expected_codes: Iterable[int]):
        self.expected_codes = frozenset(expected_codes)

    def send(self, conn: ControlConnectionManager):
        raise NotImplementedError

    def describe(self) -> str:
        raise NotImplementedError


class GreetingStep(Step):
    """Waits for the unsolicited banner; nothing is written."""

    def send(self, conn: ControlConnectionManager):
        pass

    def describe(self) -> str:
        return "<greeting>"


class CommandStep(Step):
    def __init__(self, text: str, expected_codes: Iterable[int]):
        super().__init__(expected_codes)
        self.text = text

    def send(self, conn: ControlConnectionManager):
        conn.send_command(self.text)

    def describe(self) -> str:
        return self.text


class ClientCommandHandler:
    def __init__(self, connection: ControlConnectionManager, parser: Optional[Parser] = None,
                 config: Optional[FTPGetConfig] = None, trace: Optional[logging.Logger] = None):
        self.conn = connection
        self.parser = parser or Parser()
        self.config = config or FTPGetConfig()
        # trace is None unless the caller asked for verbose output
        self.trace = trace
        self.data_addr = None

    def exchange(self, step: Step) -> Reply:
        """
        Sends the step's command (if any) and reads replies until a final line.

        Continuation lines are dropped. The final reply is returned when its
        code is expected, otherwise ProtocolError carries it.
        """
        if self.trace:
            self.trace.info("==> %s", step.describe())
        try:
            step.send(self.conn)
            reply = self.conn.read_reply()
            while reply.is_continuation:
                reply = self.conn.read_reply()
            if reply.code not in step.expected_codes:
                raise ProtocolError(reply.code, reply.message)
        except Exception as e:
            if self.trace:
                self.trace.info("<== ERROR %s", e)
            raise
        if self.trace:
            self.trace.info("<== %s", reply)
        return reply

    def _execute(self, command: str, *expected_codes: int) -> Reply:
        return self.exchange(CommandStep(command, expected_codes))

    def read_banner(self) -> Reply:
        return self.exchange(GreetingStep([220]))

    def _user(self, username: str):
        return self._execute(f"USER {username}", 230, 331)

    def _pass(self, password: str):
        return self._execute(f"PASS {password}", 230)

    def _cwd(self, path: str):
        return self._execute(f"CWD {path}", 250)

    def _type(self, mode: str = "I"):
        return self._execute(f"TYPE {mode}", 200)

    def _pasv(self) -> str:
        reply = self._execute("PASV", 227)
        self.data_addr = self.parser.parse_pasv_response(reply.message)
        return self.data_addr

    def _retr(self, filename: str):
        return self._execute(f"RETR {filename}", 150)

    def login(self) -> Reply:
        """Login anónimo: USER y, si el servidor lo pide (331), PASS."""
        reply = self._user(self.config.anonymous_user)
        if reply.code == 331:
            reply = self._pass(self.config.anonymous_password)
        return reply

    def run_sequence(self, target: Target) -> DataConnectionManager:
        """
        Greeting, login, CWD, TYPE I and PASV, then opens the data connection.

        The first failing step raises; nothing is retried. RETR is left to the
        caller so the transfer can take ownership right after the 150.
        """
        self.read_banner()
        self.login()
        self._cwd(target.remote_dir)
        self._type("I")
        ip, port = split_address(self._pasv())

        data_conn = DataConnectionManager(ip, port, timeout=self.config.timeout)
        data_conn.connect()
        return data_conn

    def retrieve(self, target: Target) -> DataConnectionManager:
        """Runs the full sequence up to an accepted RETR."""
        data_conn = self.run_sequence(target)
        try:
            self._retr(target.filename)
        except Exception:
            data_conn.close()
            raise
        logger.info("RETR %s accepted by %s", target.filename, target.address)
        return data_conn
