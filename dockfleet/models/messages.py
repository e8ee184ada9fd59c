"""WebSocket protocol messages.

Inbound and outbound frames are JSON objects tagged by ``type``. Inbound
frames are decoded exactly once, at the edge, into one of the
``ClientMessage`` variants; everything past ``decode_client_message`` works
with typed objects. Outbound events are serialized with ``to_json()``.
"""

import json
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from .deployment import ComposePlan, DeploymentOutcome, SingleContainerSpec
from .errors import ProtocolError
from .stats import MetricsSnapshot


class Topic(str, Enum):
    """Independent data channels carried over one session."""

    LOGS = "logs"
    STATS = "stats"
    TERMINAL = "terminal"
    DEPLOYMENT = "deployment"


# ============================================================================
# Inbound (client -> server)
# ============================================================================


class SubscribeOptions(BaseModel):
    """Per-subscription options (only the logs topic reads them today)."""

    tail: Optional[int] = Field(default=None, ge=0)
    timestamps: Optional[bool] = None


class SubscribeMessage(BaseModel):
    type: Literal["subscribe"] = "subscribe"
    topic: Topic
    options: SubscribeOptions = Field(default_factory=SubscribeOptions)


class UnsubscribeMessage(BaseModel):
    type: Literal["unsubscribe"] = "unsubscribe"
    topic: Topic


class TerminalInputMessage(BaseModel):
    type: Literal["terminal_input"] = "terminal_input"
    data: str


class TerminalResizeMessage(BaseModel):
    type: Literal["terminal_resize"] = "terminal_resize"
    rows: int = Field(..., ge=1, le=1000)
    cols: int = Field(..., ge=1, le=1000)


class PongMessage(BaseModel):
    type: Literal["pong"] = "pong"


class DeployContainerMessage(BaseModel):
    type: Literal["deploy_container"] = "deploy_container"
    spec: SingleContainerSpec = Field(..., validation_alias=AliasChoices("spec", "deployConfig"))


class DeployComposeMessage(BaseModel):
    type: Literal["deploy_compose"] = "deploy_compose"
    plan: ComposePlan = Field(..., validation_alias=AliasChoices("plan", "composeConfig"))


ClientMessage = Annotated[
    Union[
        SubscribeMessage,
        UnsubscribeMessage,
        TerminalInputMessage,
        TerminalResizeMessage,
        PongMessage,
        DeployContainerMessage,
        DeployComposeMessage,
    ],
    Field(discriminator="type"),
]

CLIENT_MESSAGE_TYPES = (
    SubscribeMessage,
    UnsubscribeMessage,
    TerminalInputMessage,
    TerminalResizeMessage,
    PongMessage,
    DeployContainerMessage,
    DeployComposeMessage,
)

_client_message_adapter = TypeAdapter(ClientMessage)

_DEPLOY_TYPES = {"deploy_container", "deploy_compose"}


def decode_client_message(raw: Union[str, bytes]) -> ClientMessage:
    """Decode one inbound frame.

    Raises:
        ProtocolError: the frame is not JSON or not a known message. Errors in
            deployment payloads are tagged with the deployment topic.
    """
    try:
        payload = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise ProtocolError(f"Malformed message: {e}")

    if not isinstance(payload, dict):
        raise ProtocolError("Message must be a JSON object")

    try:
        return _client_message_adapter.validate_python(payload)
    except PydanticValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        message = f"Invalid {payload.get('type', 'message')}: {location}: {first['msg']}"
        topic = Topic.DEPLOYMENT.value if payload.get("type") in _DEPLOY_TYPES else None
        raise ProtocolError(message, topic=topic)


# ============================================================================
# Outbound (server -> client)
# ============================================================================


class ServerMessage(BaseModel):
    """Base for every outbound event."""

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)


class ConnectedEvent(ServerMessage):
    type: Literal["connected"] = "connected"
    container_id: str = Field(..., alias="containerId")
    connection_id: str = Field(..., alias="connectionId")


class SubscribedEvent(ServerMessage):
    type: Literal["subscribed"] = "subscribed"
    topic: Topic


class UnsubscribedEvent(ServerMessage):
    type: Literal["unsubscribed"] = "unsubscribed"
    topic: Topic


class LogsEvent(ServerMessage):
    """Cumulative log text (topic logs) or one progress line (topic deployment)."""

    type: Literal["logs"] = "logs"
    topic: Literal["logs", "deployment"] = "logs"
    data: str


class StatsEvent(ServerMessage):
    type: Literal["stats"] = "stats"
    topic: Literal["stats"] = "stats"
    data: MetricsSnapshot


class TerminalOutputEvent(ServerMessage):
    type: Literal["terminal_output"] = "terminal_output"
    topic: Literal["terminal"] = "terminal"
    data: str


class TerminalEndEvent(ServerMessage):
    type: Literal["terminal_end"] = "terminal_end"
    container_id: str = Field(..., alias="containerId")


class ErrorEvent(ServerMessage):
    """An error scoped to one topic, or to the whole session when topic is absent."""

    type: Literal["error"] = "error"
    topic: Optional[Topic] = None
    error: str


class PingEvent(ServerMessage):
    type: Literal["ping"] = "ping"


class DeploymentCompleteEvent(ServerMessage):
    type: Literal["deployment_complete"] = "deployment_complete"
    topic: Literal["deployment"] = "deployment"
    data: DeploymentOutcome
