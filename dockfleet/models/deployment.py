"""Deployment plan models.

A deployment is either a single container (``SingleContainerSpec``) or a
multi-service compose stack (``ComposePlan``). Field aliases follow the
dashboard's JSON so payloads can be validated directly.
"""

import shlex
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

RestartPolicy = Literal["no", "always", "on-failure", "unless-stopped"]


class DeploymentStatus(str, Enum):
    """Terminal state of one deployment invocation."""

    SUCCESS = "success"
    ERROR = "error"


class EnvVar(BaseModel):
    """One environment variable."""

    key: str = Field(..., min_length=1)
    value: str = ""

    @field_validator("value", mode="before")
    @classmethod
    def stringify_value(cls, v):
        return "" if v is None else str(v)


class PortMapping(BaseModel):
    """Host port published for a container port."""

    host: str
    container: str
    protocol: Literal["tcp", "udp", "sctp"] = "tcp"

    @field_validator("host", "container", mode="before")
    @classmethod
    def stringify_port(cls, v):
        return str(v)


class VolumeBinding(BaseModel):
    """Host path (or volume name) mounted into the container."""

    host: str = Field(..., min_length=1)
    container: str = Field(..., min_length=1)
    read_only: bool = Field(default=False, alias="readOnly")

    model_config = ConfigDict(populate_by_name=True)


class SingleContainerSpec(BaseModel):
    """Declarative description of one container to deploy."""

    image: str = Field(..., min_length=1)
    name: Optional[str] = None
    cmd: Optional[List[str]] = None
    env: List[EnvVar] = Field(default_factory=list)
    ports: List[PortMapping] = Field(default_factory=list)
    volumes: List[VolumeBinding] = Field(default_factory=list)
    memory: Optional[int] = Field(default=None, ge=0, description="Memory limit in MB")
    cpu_shares: Optional[int] = Field(default=None, ge=0, alias="cpuShares")
    restart_policy: Optional[RestartPolicy] = Field(default=None, alias="restartPolicy")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("cmd", mode="before")
    @classmethod
    def split_cmd(cls, v):
        if isinstance(v, str):
            return shlex.split(v)
        return v


class NetworkSpec(BaseModel):
    """A network declared by a compose plan."""

    driver: str = "bridge"
    internal: bool = False
    attachable: bool = False
    labels: Dict[str, str] = Field(default_factory=dict)


class VolumeSpec(BaseModel):
    """A named volume declared by a compose plan."""

    driver: str = "local"
    labels: Dict[str, str] = Field(default_factory=dict)


class ServiceSpec(BaseModel):
    """One service of a compose plan."""

    image: str = Field(..., min_length=1)
    container_name: Optional[str] = None
    command: Optional[List[str]] = None
    environment: Dict[str, str] = Field(default_factory=dict)
    ports: List[str] = Field(default_factory=list)
    volumes: List[str] = Field(default_factory=list)
    networks: List[str] = Field(default_factory=list)
    restart: Optional[RestartPolicy] = None
    depends_on: List[str] = Field(default_factory=list)
    labels: Dict[str, str] = Field(default_factory=dict)

    @field_validator("command", mode="before")
    @classmethod
    def split_command(cls, v):
        if isinstance(v, str):
            return shlex.split(v)
        return v

    @field_validator("environment", mode="before")
    @classmethod
    def normalize_environment(cls, v):
        # Compose accepts both {"KEY": "value"} and ["KEY=value"]
        if v is None:
            return {}
        if isinstance(v, list):
            env = {}
            for item in v:
                key, _, value = str(item).partition("=")
                env[key] = value
            return env
        return {key: "" if value is None else str(value) for key, value in v.items()}

    @field_validator("ports", mode="before")
    @classmethod
    def stringify_ports(cls, v):
        return [str(port) for port in (v or [])]

    @field_validator("networks", "depends_on", mode="before")
    @classmethod
    def names_from_mapping(cls, v):
        # Long syntax ({"front": {...}}) only contributes the names
        if v is None:
            return []
        if isinstance(v, dict):
            return list(v.keys())
        return v

    def named_volume_refs(self) -> List[str]:
        """Volume names referenced by this service (bind mounts excluded)."""
        return [name for name, _ in (_split_volume_source(entry) for entry in self.volumes) if name]


def _split_volume_source(entry: str) -> tuple[Optional[str], str]:
    """Split ``source:target[:mode]`` into (volume name or None, remainder).

    Sources starting with ``/``, ``.`` or ``~`` are host paths, anything
    else is a named volume.
    """
    source, sep, rest = entry.partition(":")
    if not sep or source.startswith(("/", ".", "~")):
        return None, entry
    return source, rest


def _coerce_declarations(v: Any, model: type[BaseModel]) -> Dict[str, Any]:
    """Allow ``{"name": "driver"}``, ``{"name": null}`` and ``{"name": {...}}``."""
    if v is None:
        return {}
    declarations = {}
    for name, config in v.items():
        if config is None:
            declarations[name] = model()
        elif isinstance(config, str):
            declarations[name] = model(driver=config)
        else:
            declarations[name] = config
    return declarations


class ComposePlan(BaseModel):
    """Multi-service deployment with shared networks and volumes."""

    project_name: str = Field(..., min_length=1, alias="projectName")
    services: Dict[str, ServiceSpec] = Field(..., min_length=1)
    networks: Dict[str, NetworkSpec] = Field(default_factory=dict)
    volumes: Dict[str, VolumeSpec] = Field(default_factory=dict)

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("networks", mode="before")
    @classmethod
    def coerce_networks(cls, v):
        return _coerce_declarations(v, NetworkSpec)

    @field_validator("volumes", mode="before")
    @classmethod
    def coerce_volumes(cls, v):
        return _coerce_declarations(v, VolumeSpec)

    def scoped_name(self, name: str) -> str:
        """Engine-side name of a network or volume declared by this plan."""
        return f"{self.project_name}_{name}"

    def unresolved_references(self) -> List[str]:
        """Describe every service reference that has no matching declaration."""
        problems = []
        for service_name, service in self.services.items():
            for network in service.networks:
                if network not in self.networks:
                    problems.append(f"service '{service_name}' references undeclared network '{network}'")
            for volume in service.named_volume_refs():
                if volume not in self.volumes:
                    problems.append(f"service '{service_name}' references undeclared volume '{volume}'")
        return problems

    def volume_binds(self, service: ServiceSpec) -> List[str]:
        """Engine bind strings for a service, with named volumes project-scoped."""
        binds = []
        for entry in service.volumes:
            name, rest = _split_volume_source(entry)
            binds.append(f"{self.scoped_name(name)}:{rest}" if name else entry)
        return binds


class DeploymentOutcome(BaseModel):
    """Terminal result of one deployment invocation."""

    status: DeploymentStatus
    container_id: Optional[str] = Field(default=None, alias="containerId")
    container_ids: Optional[List[str]] = Field(default=None, alias="containerIds")
    error: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)
