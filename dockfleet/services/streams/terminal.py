"""Interactive shell adapter."""

import codecs
from typing import List, Optional

import structlog

from ...config import settings
from ...models.errors import AdapterError, EngineError, ShellUnavailableError
from ...models.messages import TerminalEndEvent, TerminalOutputEvent, Topic
from ..engine.client import EngineClient, ExecSocket
from .base import StreamAdapter

logger = structlog.get_logger(__name__)


class TerminalAdapter(StreamAdapter):
    """A TTY shell inside the container, bridged to the session.

    Shell candidates are tried in order. Each one is first probed with a
    non-interactive ``-c "exit 0"`` exec so a missing binary is detected
    before anything is attached.
    """

    topic = Topic.TERMINAL
    releases_on_end = False

    def __init__(
        self,
        container_id: str,
        engine: EngineClient,
        shells: Optional[List[str]] = None,
        term: Optional[str] = None,
    ):
        super().__init__(container_id)
        self._engine = engine
        config = settings.sessions
        self.shells = list(shells or config.terminal_shells)
        self.term = term or config.terminal_term
        self.shell: Optional[str] = None
        self._socket: Optional[ExecSocket] = None
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._ended = False

    @property
    def exec_id(self) -> Optional[str]:
        return self._socket.exec_id if self._socket else None

    @property
    def supports_resize(self) -> bool:
        return self._socket is not None and self._socket.supports_resize

    async def open(self) -> None:
        tried = []
        last_error = ""
        for shell in self.shells:
            tried.append(shell)
            try:
                exit_code = await self._engine.probe_command(self.container_id, [shell, "-c", "exit 0"])
                if exit_code != 0:
                    last_error = f"{shell} exited with code {exit_code}"
                    logger.debug("Shell probe failed", container_id=self.container_id, shell=shell, exit_code=exit_code)
                    continue
                self._socket = await self._engine.open_exec(
                    self.container_id,
                    [shell],
                    environment={"TERM": self.term},
                )
            except EngineError as e:
                last_error = e.message
                logger.debug("Shell unavailable", container_id=self.container_id, shell=shell, error=e.message)
                continue

            self.shell = shell
            logger.info("Terminal opened", container_id=self.container_id, shell=shell, exec_id=self.exec_id)
            return

        raise ShellUnavailableError(tried, last_error)

    async def write(self, data: str) -> None:
        """Forward client keystrokes to the shell."""
        if self._ended or self._socket is None or self._socket.closed:
            raise AdapterError(self.topic.value, "Terminal session has ended")
        try:
            await self._socket.write(data.encode("utf-8"))
        except OSError as e:
            raise AdapterError(self.topic.value, f"Failed to write to terminal: {e}")

    async def resize(self, rows: int, cols: int) -> None:
        if self._ended or self._socket is None:
            raise AdapterError(self.topic.value, "Terminal session has ended")
        if not self.supports_resize:
            raise AdapterError(self.topic.value, "Terminal does not support resize")
        try:
            await self._socket.resize(rows, cols)
        except EngineError as e:
            raise AdapterError(self.topic.value, f"Failed to resize terminal: {e.message}")

    async def _emit(self, text: str) -> None:
        if text:
            await self._publish(TerminalOutputEvent(data=text))

    async def _pump(self) -> None:
        try:
            while True:
                chunk = await self._socket.read()
                if not chunk:
                    break
                await self._emit(self._decoder.decode(chunk))
        except OSError:
            self._ended = True
            raise

        self._ended = True
        await self._emit(self._decoder.decode(b"", final=True))
        logger.info("Shell exited", container_id=self.container_id, shell=self.shell)
        await self._publish(TerminalEndEvent(container_id=self.container_id))

    async def _close(self) -> None:
        self._ended = True
        if self._socket is not None:
            await self._socket.aclose()
