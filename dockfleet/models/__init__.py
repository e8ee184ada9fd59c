"""Data models for dockfleet."""

from .deployment import (
    ComposePlan,
    DeploymentOutcome,
    DeploymentStatus,
    EnvVar,
    NetworkSpec,
    PortMapping,
    ServiceSpec,
    SingleContainerSpec,
    VolumeBinding,
    VolumeSpec,
)
from .errors import (
    AdapterError,
    DeploymentError,
    DockfleetException,
    EngineConflictError,
    EngineError,
    EngineNotFoundError,
    ErrorDetail,
    ErrorResponse,
    ErrorType,
    HostUnreachableError,
    ProtocolError,
    ServiceUnavailableError,
    ShellUnavailableError,
)
from .hosts import HostInfo, HostMetadata, HostStatus
from .messages import (
    ClientMessage,
    ConnectedEvent,
    DeployComposeMessage,
    DeployContainerMessage,
    DeploymentCompleteEvent,
    ErrorEvent,
    LogsEvent,
    PingEvent,
    PongMessage,
    ServerMessage,
    StatsEvent,
    SubscribedEvent,
    SubscribeMessage,
    SubscribeOptions,
    TerminalEndEvent,
    TerminalInputMessage,
    TerminalOutputEvent,
    TerminalResizeMessage,
    Topic,
    UnsubscribedEvent,
    UnsubscribeMessage,
    decode_client_message,
)
from .stats import MetricsSnapshot

__all__ = [
    # Deployment models
    "ComposePlan",
    "DeploymentOutcome",
    "DeploymentStatus",
    "EnvVar",
    "NetworkSpec",
    "PortMapping",
    "ServiceSpec",
    "SingleContainerSpec",
    "VolumeBinding",
    "VolumeSpec",
    # Error models
    "AdapterError",
    "DeploymentError",
    "DockfleetException",
    "EngineConflictError",
    "EngineError",
    "EngineNotFoundError",
    "ErrorDetail",
    "ErrorResponse",
    "ErrorType",
    "HostUnreachableError",
    "ProtocolError",
    "ServiceUnavailableError",
    "ShellUnavailableError",
    # Host models
    "HostInfo",
    "HostMetadata",
    "HostStatus",
    # Protocol messages
    "ClientMessage",
    "ConnectedEvent",
    "DeployComposeMessage",
    "DeployContainerMessage",
    "DeploymentCompleteEvent",
    "ErrorEvent",
    "LogsEvent",
    "PingEvent",
    "PongMessage",
    "ServerMessage",
    "StatsEvent",
    "SubscribedEvent",
    "SubscribeMessage",
    "SubscribeOptions",
    "TerminalEndEvent",
    "TerminalInputMessage",
    "TerminalOutputEvent",
    "TerminalResizeMessage",
    "Topic",
    "UnsubscribedEvent",
    "UnsubscribeMessage",
    "decode_client_message",
    # Stats
    "MetricsSnapshot",
]
