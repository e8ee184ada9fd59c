"""Container and compose-stack provisioning.

A pipeline run reports every step as a timestamped progress line on the
deployment topic and ends with exactly one ``deployment_complete`` event.
Steps run strictly in order; nothing is retried or rolled back.
"""

from datetime import UTC, datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

import structlog

from ..config import settings
from ..models.deployment import (
    ComposePlan,
    DeploymentOutcome,
    DeploymentStatus,
    ServiceSpec,
    SingleContainerSpec,
)
from ..models.errors import DeploymentError, DockfleetException, EngineConflictError, EngineError
from ..models.messages import DeploymentCompleteEvent, LogsEvent, ServerMessage
from .engine.client import EngineClient

logger = structlog.get_logger(__name__)

Send = Callable[[ServerMessage], Awaitable[None]]


def format_progress(event: Dict[str, Any]) -> Optional[str]:
    """Render one pull progress record as ``"{id}: {status} [current/total]"``."""
    status = event.get("status")
    if not status:
        return None
    line = f"{event['id']}: {status}" if event.get("id") else status
    detail = event.get("progressDetail") or {}
    if detail.get("current") is not None and detail.get("total") is not None:
        line += f" [{detail['current']}/{detail['total']}]"
    return line


def restart_policy(name: Optional[str], max_retries: int) -> Optional[Dict[str, Any]]:
    if not name:
        return None
    return {
        "Name": name,
        "MaximumRetryCount": max_retries if name == "on-failure" else 0,
    }


def parse_port(entry: str) -> Tuple[str, Dict[str, str]]:
    """Parse ``[ip:][host:]container[/proto]`` into (container port key, binding)."""
    mapping, _, protocol = entry.partition("/")
    parts = mapping.split(":")
    container_port = parts[-1]
    binding = {}
    if len(parts) == 3:
        binding = {"HostIp": parts[0], "HostPort": parts[1]}
    elif len(parts) == 2:
        binding = {"HostPort": parts[0]}
    return f"{container_port}/{protocol or 'tcp'}", binding


def build_container_config(spec: SingleContainerSpec, max_retries: Optional[int] = None) -> Dict[str, Any]:
    """Engine create-container body for a single container."""
    if max_retries is None:
        max_retries = settings.deploy_on_failure_max_retries

    config: Dict[str, Any] = {"Image": spec.image}
    host_config: Dict[str, Any] = {}

    if spec.cmd:
        config["Cmd"] = spec.cmd
    if spec.env:
        config["Env"] = [f"{var.key}={var.value}" for var in spec.env]
    if spec.ports:
        config["ExposedPorts"] = {}
        host_config["PortBindings"] = {}
        for port in spec.ports:
            key = f"{port.container}/{port.protocol}"
            config["ExposedPorts"][key] = {}
            host_config["PortBindings"].setdefault(key, []).append({"HostPort": port.host})
    if spec.volumes:
        host_config["Binds"] = [
            f"{volume.host}:{volume.container}" + (":ro" if volume.read_only else "") for volume in spec.volumes
        ]
    if spec.memory:
        host_config["Memory"] = spec.memory * 1024 * 1024
    if spec.cpu_shares:
        host_config["CpuShares"] = spec.cpu_shares
    policy = restart_policy(spec.restart_policy, max_retries)
    if policy:
        host_config["RestartPolicy"] = policy

    config["HostConfig"] = host_config
    return config


def build_service_config(
    plan: ComposePlan,
    service_name: str,
    service: ServiceSpec,
    max_retries: Optional[int] = None,
) -> Tuple[Dict[str, Any], str, List[str]]:
    """Engine create-container body for one compose service.

    Returns the body, the container name, and the engine names of networks
    beyond the first, which must be connected after creation.
    """
    if max_retries is None:
        max_retries = settings.deploy_on_failure_max_retries

    name = service.container_name or f"{plan.project_name}_{service_name}_1"
    labels = {
        "com.docker.compose.project": plan.project_name,
        "com.docker.compose.service": service_name,
        **service.labels,
    }
    config: Dict[str, Any] = {"Image": service.image, "Labels": labels}
    host_config: Dict[str, Any] = {}

    if service.command:
        config["Cmd"] = service.command
    if service.environment:
        config["Env"] = [f"{key}={value}" for key, value in service.environment.items()]
    if service.ports:
        config["ExposedPorts"] = {}
        host_config["PortBindings"] = {}
        for entry in service.ports:
            key, binding = parse_port(entry)
            config["ExposedPorts"][key] = {}
            if binding:
                host_config["PortBindings"].setdefault(key, []).append(binding)
    if service.volumes:
        host_config["Binds"] = plan.volume_binds(service)
    policy = restart_policy(service.restart, max_retries)
    if policy:
        host_config["RestartPolicy"] = policy

    networks = [plan.scoped_name(network) for network in service.networks]
    if networks:
        host_config["NetworkMode"] = networks[0]
        config["NetworkingConfig"] = {"EndpointsConfig": {networks[0]: {"Aliases": [service_name]}}}

    config["HostConfig"] = host_config
    return config, name, networks[1:]


class DeploymentPipeline:
    """Runs one deployment against a host and reports over the session."""

    def __init__(self, engine: EngineClient, send: Send, max_retries: Optional[int] = None):
        self._engine = engine
        self._send = send
        self.max_retries = settings.deploy_on_failure_max_retries if max_retries is None else max_retries

    async def _progress(self, text: str) -> None:
        stamp = datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")
        await self._send(LogsEvent(topic="deployment", data=f"[{stamp}] {text}\n"))

    async def _complete(self, outcome: DeploymentOutcome) -> DeploymentOutcome:
        await self._send(DeploymentCompleteEvent(data=outcome))
        return outcome

    async def _fail(self, error: Exception) -> DeploymentOutcome:
        message = error.message if isinstance(error, DockfleetException) else str(error)
        await self._progress(f"ERROR: {message}")
        return await self._complete(DeploymentOutcome(status=DeploymentStatus.ERROR, error=message))

    async def _pull(self, image: str) -> None:
        await self._progress(f"Pulling image: {image}")
        async for event in self._engine.pull_image(image):
            line = format_progress(event)
            if line:
                await self._progress(line)
        await self._progress(f"Image pulled: {image}")

    async def deploy_container(self, spec: SingleContainerSpec) -> DeploymentOutcome:
        """Pull, create and start a single container."""
        logger.info("Starting container deployment", host=self._engine.host, image=spec.image, name=spec.name)
        try:
            await self._progress("Starting deployment...")
            await self._pull(spec.image)

            await self._progress(f"Creating container: {spec.name or 'auto'}")
            container_id = await self._engine.create_container(
                build_container_config(spec, self.max_retries),
                name=spec.name,
            )
            await self._progress(f"Container created: {container_id}")

            await self._progress("Starting container...")
            await self._engine.start_container(container_id)
            await self._progress("Container started successfully")
            await self._progress("Deployment complete!")
        except Exception as e:
            logger.error("Container deployment failed", host=self._engine.host, image=spec.image, error=str(e))
            return await self._fail(e)

        logger.info("Container deployed", host=self._engine.host, container_id=container_id)
        return await self._complete(DeploymentOutcome(status=DeploymentStatus.SUCCESS, container_id=container_id))

    async def deploy_compose(self, plan: ComposePlan) -> DeploymentOutcome:
        """Provision networks and volumes, then every service in declaration order."""
        logger.info(
            "Starting compose deployment",
            host=self._engine.host,
            project=plan.project_name,
            services=list(plan.services),
        )
        container_ids: List[str] = []
        try:
            await self._progress(f"Starting compose deployment: {plan.project_name}")

            problems = plan.unresolved_references()
            if problems:
                raise DeploymentError("Invalid compose plan: " + "; ".join(problems), step="validate")

            for name, network in plan.networks.items():
                await self._progress(f"Creating network: {name}")
                try:
                    network_id = await self._engine.create_network(plan.scoped_name(name), network)
                    await self._progress(f"Network created: {network_id}")
                except EngineError as e:
                    if not _already_exists(e):
                        raise
                    await self._progress(f"Network {name} already exists")

            for name, volume in plan.volumes.items():
                await self._progress(f"Creating volume: {name}")
                try:
                    await self._engine.create_volume(plan.scoped_name(name), volume)
                    await self._progress(f"Volume created: {name}")
                except EngineError as e:
                    if not _already_exists(e):
                        raise
                    await self._progress(f"Volume {name} already exists")

            for service_name, service in plan.services.items():
                await self._progress(f"Deploying service: {service_name}")
                await self._pull(service.image)

                config, container_name, extra_networks = build_service_config(
                    plan, service_name, service, self.max_retries
                )
                container_id = await self._engine.create_container(config, name=container_name)
                for network in extra_networks:
                    await self._engine.connect_network(network, container_id)
                await self._engine.start_container(container_id)

                container_ids.append(container_id)
                await self._progress(f"Service {service_name} deployed: {container_id}")

            await self._progress("Compose deployment complete!")
        except Exception as e:
            logger.error(
                "Compose deployment failed",
                host=self._engine.host,
                project=plan.project_name,
                deployed=len(container_ids),
                error=str(e),
            )
            return await self._fail(e)

        logger.info("Compose stack deployed", host=self._engine.host, project=plan.project_name, containers=container_ids)
        return await self._complete(DeploymentOutcome(status=DeploymentStatus.SUCCESS, container_ids=container_ids))


def _already_exists(error: EngineError) -> bool:
    return isinstance(error, EngineConflictError) or "already exists" in error.message
