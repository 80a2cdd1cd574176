"""Typed planner actions, validated at the parse boundary."""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator


HOME_TARGET = "home"
MAX_CHAT_MESSAGE_CHARS = 400
_KIND_ALIASES = {
    "idle": "idle",
    "wait": "idle",
    "gather": "gather",
    "moveto": "moveTo",
    "move_to": "moveTo",
    "move": "moveTo",
    "attack": "attack",
    "chat": "chat",
}


class ActionParseError(ValueError):
    def __init__(
        self,
        message: str,
        *,
        error_code: str,
        action_kind: str | None = None,
        intent: str | None = None,
    ) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.action_kind = action_kind
        self.intent = intent


class MalformedActionError(ActionParseError):
    """Payload is not an action object at all (no action/intent)."""


class InvalidActionError(ActionParseError):
    """Payload names an unknown action or lacks a required id/message."""


class _ActionBase(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", str_strip_whitespace=True)

    intent: str = ""

    @property
    def kind(self) -> str:
        return str(getattr(self, "action"))

    @property
    def target_ref(self) -> str | None:
        return None

    def describe(self) -> str:
        target = self.target_ref
        return f"{self.kind} {target}" if target else self.kind


class IdleAction(_ActionBase):
    action: Literal["idle"]


class GatherAction(_ActionBase):
    action: Literal["gather"]
    object_id: str = Field(min_length=1)

    @property
    def target_ref(self) -> str | None:
        return self.object_id


class MoveToAction(_ActionBase):
    action: Literal["moveTo"]
    target_id: str = Field(min_length=1)

    @property
    def target_ref(self) -> str | None:
        return self.target_id


class AttackAction(_ActionBase):
    action: Literal["attack"]
    target_id: str = Field(min_length=1)

    @property
    def target_ref(self) -> str | None:
        return self.target_id


class ChatAction(_ActionBase):
    action: Literal["chat"]
    target_id: str = Field(min_length=1)
    message: str = Field(min_length=1)

    @field_validator("message")
    @classmethod
    def _cap_message(cls, value: str) -> str:
        return value[:MAX_CHAT_MESSAGE_CHARS]

    @property
    def target_ref(self) -> str | None:
        return self.target_id


PlannedAction = Annotated[
    Union[IdleAction, GatherAction, MoveToAction, AttackAction, ChatAction],
    Field(discriminator="action"),
]
_PLANNED_ACTION_ADAPTER: TypeAdapter[Any] = TypeAdapter(PlannedAction)


def normalize_action_kind(value: Any) -> str | None:
    key = str(value or "").strip().lower()
    return _KIND_ALIASES.get(key)


def parse_planned_action(payload: Any) -> PlannedAction:
    """Validate a decoded planner payload into one action variant.

    Raises ``MalformedActionError`` when the payload is not an object or lacks
    ``action``/``intent``, and ``InvalidActionError`` for unknown kinds or
    missing ids/messages.
    """
    if not isinstance(payload, dict):
        raise MalformedActionError(
            f"Expected a JSON object, got {type(payload).__name__}",
            error_code="malformed_response",
        )
    raw_kind = payload.get("action")
    if not isinstance(raw_kind, str) or not raw_kind.strip():
        raise MalformedActionError("Response is missing 'action'", error_code="malformed_response")
    intent = payload.get("intent")
    if not isinstance(intent, str):
        raise MalformedActionError("Response is missing 'intent'", error_code="malformed_response")

    kind = normalize_action_kind(raw_kind)
    if kind is None:
        raise InvalidActionError(
            f"Unknown action kind: {raw_kind}",
            error_code="unknown_action",
            action_kind=raw_kind.strip(),
            intent=intent,
        )

    candidate = {key: value for key, value in payload.items() if value is not None}
    candidate["action"] = kind
    try:
        return _PLANNED_ACTION_ADAPTER.validate_python(candidate)
    except ValidationError as exc:
        fields = sorted({".".join(str(part) for part in err["loc"][1:]) or "payload" for err in exc.errors()})
        raise InvalidActionError(
            f"Action '{kind}' is missing or has invalid fields: {', '.join(fields)}",
            error_code="invalid_action",
            action_kind=kind,
            intent=intent,
        ) from exc
