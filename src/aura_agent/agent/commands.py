"""Page-manipulation commands as a closed union of Pydantic v2 models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator


class _CommandModel(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class SearchAndNavigate(_CommandModel):
    action: Literal["search_and_navigate"] = "search_and_navigate"
    topic: str = Field(min_length=1)


class AgreeAndStartForm(_CommandModel):
    action: Literal["agree_and_start_form"] = "agree_and_start_form"


class StartFormFilling(_CommandModel):
    action: Literal["start_form_filling"] = "start_form_filling"


class Click(_CommandModel):
    action: Literal["click"] = "click"
    selector: str = Field(min_length=1)


class _ValueCommand(_CommandModel):
    selector: str = Field(min_length=1)
    value: str

    @field_validator("value", mode="before")
    @classmethod
    def _scalar_to_text(cls, value: Any) -> Any:
        # Models often emit numbers or booleans for field values.
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (int, float)):
            return str(value)
        return value


class Fill(_ValueCommand):
    action: Literal["fill"] = "fill"


class Select(_ValueCommand):
    action: Literal["select"] = "select"


Command = Annotated[
    Union[SearchAndNavigate, AgreeAndStartForm, StartFormFilling, Click, Fill, Select],
    Field(discriminator="action"),
]

KNOWN_ACTIONS = frozenset(
    {"search_and_navigate", "agree_and_start_form", "start_form_filling", "click", "fill", "select"}
)

_COMMAND_ADAPTER: TypeAdapter[Command] = TypeAdapter(Command)


@dataclass(slots=True, frozen=True)
class UnsupportedCommand:
    """Well-formed object naming an action outside the known set."""

    action: str
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class InvalidCommand:
    """Known action with missing or mistyped fields; reported, chain continues."""

    action: str
    reason: str
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class MalformedCommand:
    """Input that cannot be interpreted as a command; halts the chain."""

    reason: str
    payload: Any = None

    @property
    def action(self) -> str:
        if isinstance(self.payload, dict) and isinstance(self.payload.get("action"), str):
            return self.payload["action"]
        return "unknown"


AnyCommand = Union[
    SearchAndNavigate,
    AgreeAndStartForm,
    StartFormFilling,
    Click,
    Fill,
    Select,
    UnsupportedCommand,
    InvalidCommand,
    MalformedCommand,
]


def parse_command(obj: Any) -> AnyCommand:
    """Interpret one wire object. Never raises."""

    if not isinstance(obj, dict):
        return MalformedCommand("Invalid command object", obj)

    action = obj.get("action")
    if not isinstance(action, str) or not action.strip():
        return MalformedCommand("Missing action", obj)

    action = action.strip()
    if action not in KNOWN_ACTIONS:
        return UnsupportedCommand(action, dict(obj))

    try:
        return _COMMAND_ADAPTER.validate_python({**obj, "action": action})
    except ValidationError as exc:
        problems = ", ".join(
            f"{'.'.join(str(part) for part in error['loc'][1:]) or action}: {error['msg']}"
            for error in exc.errors()
        )
        return InvalidCommand(action, problems, dict(obj))


def command_payload(command: AnyCommand) -> dict[str, Any]:
    """Plain-dict view of a command for traces and logs."""

    if isinstance(command, BaseModel):
        return command.model_dump()
    if isinstance(command, (UnsupportedCommand, InvalidCommand)):
        return {**command.payload, "action": command.action}
    return {"action": command.action, "reason": command.reason}
