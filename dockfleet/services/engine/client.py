"""Client for one host's container engine API.

Request/response calls go through docker-py's low-level ``APIClient`` and
run in the default executor, the same way the rest of the service drives
docker-py. The long-lived streaming endpoints (logs, stats, image pull)
are read with ``httpx`` so that each one is a cancellable async iterator of
raw chunks; docker-py's blocking generators cannot be interrupted from the
event loop. Interactive execs use docker-py's hijacked exec socket, driven
non-blocking from the loop.
"""

import asyncio
import functools
import json
import socket
from typing import Any, AsyncIterator, Dict, List, Optional

import docker
import httpx
import structlog
from docker.errors import APIError, DockerException
from docker.utils import parse_repository_tag

from ...config import settings
from ...models.deployment import NetworkSpec, VolumeSpec
from ...models.errors import (
    EngineConflictError,
    EngineError,
    EngineNotFoundError,
    HostUnreachableError,
)
from .framing import RecordSplitter

logger = structlog.get_logger(__name__)

READ_CHUNK_SIZE = 4096


def _engine_error(error: APIError) -> EngineError:
    """Map a docker-py APIError onto the engine error hierarchy."""
    message = error.explanation or str(error)
    if isinstance(message, bytes):
        message = message.decode("utf-8", errors="replace")
    if error.status_code == 409:
        return EngineConflictError(message)
    if error.status_code == 404:
        return EngineNotFoundError(message)
    return EngineError(message, engine_status=error.status_code)


async def _response_error(response: httpx.Response) -> EngineError:
    """Build an engine error from a failed streaming response and close it."""
    try:
        body = await response.aread()
        try:
            message = json.loads(body).get("message") or body.decode("utf-8", errors="replace")
        except (ValueError, AttributeError):
            message = body.decode("utf-8", errors="replace")
    finally:
        await response.aclose()

    message = message.strip() or response.reason_phrase
    if response.status_code == 409:
        return EngineConflictError(message)
    if response.status_code == 404:
        return EngineNotFoundError(message)
    return EngineError(message, engine_status=response.status_code)


def _pull_event(record: bytes, image: str) -> Optional[Dict[str, Any]]:
    """Decode one pull progress record; an ``error`` record raises EngineError."""
    try:
        event = json.loads(record)
    except ValueError:
        logger.debug("Skipping malformed pull record", image=image)
        return None
    if event.get("error"):
        raise EngineError(event["error"])
    return event


class ChunkStream:
    """Raw chunks of one streaming engine response.

    Iterating pulls chunks lazily from the socket. The stream can be consumed
    only once; ``aclose()`` releases the connection and is safe to call more
    than once.
    """

    def __init__(self, response: httpx.Response):
        self._response = response

    @property
    def closed(self) -> bool:
        return self._response.is_closed

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self._response.aiter_raw()

    async def aclose(self) -> None:
        await self._response.aclose()


class ExecSocket:
    """Bidirectional byte stream of an interactive exec bound to a TTY."""

    supports_resize = True

    def __init__(self, engine: "EngineClient", exec_id: str, sock: socket.socket):
        self.exec_id = exec_id
        self._engine = engine
        self._sock = sock
        self._sock.setblocking(False)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def read(self) -> bytes:
        """Next chunk of process output; ``b""`` once the process closed its side."""
        loop = asyncio.get_event_loop()
        return await loop.sock_recv(self._sock, READ_CHUNK_SIZE)

    async def write(self, data: bytes) -> None:
        loop = asyncio.get_event_loop()
        await loop.sock_sendall(self._sock, data)

    async def resize(self, rows: int, cols: int) -> None:
        await self._engine.resize_exec(self.exec_id, rows, cols)

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        self._sock.close()


class EngineClient:
    """Stateless wrapper around one host's engine API."""

    def __init__(
        self,
        host: str,
        docker_client: docker.DockerClient,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.host = host
        self.client = docker_client
        self._http = http_client or httpx.AsyncClient(
            base_url=settings.get_engine_url(host),
            timeout=httpx.Timeout(
                settings.engine_request_timeout,
                connect=settings.engine_connect_timeout,
                read=None,
            ),
        )

    @classmethod
    async def connect(cls, host: str) -> "EngineClient":
        """Create a client bound to ``host``.

        Negotiating the API version is the first round trip to the engine, so
        an unreachable host fails here.

        Raises:
            HostUnreachableError: the engine did not answer.
        """
        config = settings.engine
        loop = asyncio.get_event_loop()
        factory = functools.partial(
            docker.DockerClient,
            base_url=f"tcp://{host}:{config.port}",
            version=config.api_version,
            timeout=max(1, int(config.connect_timeout)),
        )
        try:
            docker_client = await loop.run_in_executor(None, factory)
        except (DockerException, OSError) as e:
            logger.warning("Engine unreachable", host=host, error=str(e))
            raise HostUnreachableError(host, str(e))

        docker_client.api.timeout = config.request_timeout
        logger.info(
            "Connected to engine",
            host=host,
            api_version=docker_client.api.api_version,
        )
        return cls(host, docker_client)

    @property
    def api(self) -> docker.APIClient:
        return self.client.api

    def _path(self, path: str) -> str:
        return f"/v{self.api.api_version}{path}"

    async def _call(self, func, *args, **kwargs):
        """Run a blocking docker-py call in the default executor."""
        loop = asyncio.get_event_loop()
        try:
            return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))
        except APIError as e:
            raise _engine_error(e)
        except (DockerException, OSError) as e:
            raise EngineError(str(e))

    async def _open_stream(self, method: str, path: str, params: Dict[str, Any]) -> httpx.Response:
        request = self._http.build_request(method, self._path(path), params=params)
        try:
            response = await self._http.send(request, stream=True)
        except httpx.HTTPError as e:
            raise EngineError(f"{method} {path} failed: {e}")
        if response.status_code >= 400:
            raise await _response_error(response)
        return response

    # ------------------------------------------------------------------
    # Streams
    # ------------------------------------------------------------------

    async def open_log_stream(self, container_id: str, tail: int, timestamps: bool) -> ChunkStream:
        """Follow-mode stdout/stderr of a container, still framed."""
        response = await self._open_stream(
            "GET",
            f"/containers/{container_id}/logs",
            {
                "follow": "1",
                "stdout": "1",
                "stderr": "1",
                "tail": str(tail),
                "timestamps": "1" if timestamps else "0",
            },
        )
        return ChunkStream(response)

    async def open_stats_stream(self, container_id: str) -> ChunkStream:
        """Newline-delimited stats records, one per engine sampling interval."""
        response = await self._open_stream("GET", f"/containers/{container_id}/stats", {"stream": "1"})
        return ChunkStream(response)

    async def fetch_stats(self, container_id: str) -> Dict[str, Any]:
        """A single stats record."""
        return await self._call(self.api.stats, container_id, stream=False)

    async def pull_image(self, image: str) -> AsyncIterator[Dict[str, Any]]:
        """Pull an image, yielding the engine's progress records.

        Raises:
            EngineError: the engine refused the pull or reported an error record.
        """
        repository, tag = parse_repository_tag(image)
        response = await self._open_stream(
            "POST",
            "/images/create",
            {"fromImage": repository, "tag": tag or "latest"},
        )
        splitter = RecordSplitter()
        try:
            async for chunk in response.aiter_raw():
                for record in splitter.feed(chunk):
                    event = _pull_event(record, image)
                    if event is not None:
                        yield event
            tail = splitter.flush()
            if tail is not None:
                event = _pull_event(tail, image)
                if event is not None:
                    yield event
        finally:
            await response.aclose()

    # ------------------------------------------------------------------
    # Provisioning
    # ------------------------------------------------------------------

    async def create_network(self, name: str, spec: NetworkSpec) -> str:
        result = await self._call(
            self.api.create_network,
            name,
            driver=spec.driver,
            # Engines before API 1.44 allow duplicate names unless asked
            check_duplicate=True,
            internal=spec.internal,
            attachable=spec.attachable,
            labels=spec.labels or None,
        )
        return result["Id"]

    async def create_volume(self, name: str, spec: VolumeSpec) -> str:
        result = await self._call(
            self.api.create_volume,
            name=name,
            driver=spec.driver,
            labels=spec.labels or None,
        )
        return result["Name"]

    async def create_container(self, config: Dict[str, Any], name: Optional[str] = None) -> str:
        result = await self._call(self.api.create_container_from_config, config, name=name)
        for warning in result.get("Warnings") or []:
            logger.warning("Engine warning on create", host=self.host, warning=warning)
        return result["Id"]

    async def start_container(self, container_id: str) -> None:
        await self._call(self.api.start, container_id)

    async def connect_network(self, network: str, container_id: str) -> None:
        await self._call(self.api.connect_container_to_network, container_id, network)

    # ------------------------------------------------------------------
    # Exec
    # ------------------------------------------------------------------

    async def probe_command(self, container_id: str, cmd: List[str]) -> int:
        """Run a non-interactive command to completion and return its exit code."""
        exec_instance = await self._call(self.api.exec_create, container_id, cmd, stdout=True, stderr=True)
        exec_id = exec_instance["Id"]
        await self._call(self.api.exec_start, exec_id)
        exec_info = await self._call(self.api.exec_inspect, exec_id)
        return exec_info.get("ExitCode") or 0

    async def open_exec(self, container_id: str, cmd: List[str], environment: Optional[Dict[str, str]] = None) -> ExecSocket:
        """Start an interactive TTY exec and return its attached socket."""
        exec_instance = await self._call(
            self.api.exec_create,
            container_id,
            cmd,
            stdout=True,
            stderr=True,
            stdin=True,
            tty=True,
            environment=environment,
        )
        exec_id = exec_instance["Id"]
        sock = await self._call(self.api.exec_start, exec_id, tty=True, socket=True)
        raw_sock = getattr(sock, "_sock", sock)
        return ExecSocket(self, exec_id, raw_sock)

    async def resize_exec(self, exec_id: str, rows: int, cols: int) -> None:
        await self._call(self.api.exec_resize, exec_id, height=rows, width=cols)

    async def close(self) -> None:
        """Release HTTP connections held for this host."""
        await self._http.aclose()
        try:
            self.client.close()
        except Exception as e:
            logger.error(f"Error closing Docker client: {e}")
