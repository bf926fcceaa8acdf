"""Encode and decode group chat WebSocket frames.

Every frame is a UTF-8 JSON object sent as a WebSocket text frame, with
camelCase keys:

  {"type": "message", "groupId": "g1", "userId": "u1",
   "content": "hello", "timestamp": "2024-01-01T10:00:00+00:00",
   "clientId": "9f1c...", "attachments": []}
"""

import json
from typing import Any

from hauhub_chat.network.types import (
    FileUploadedFrame,
    Frame,
    InboundFrame,
    JoinFrame,
    LeaveFrame,
    MemberJoinedFrame,
    MemberLeftFrame,
    MessageFrame,
    TypingFrame,
    UnknownFrame,
)


# ---------------------------------------------------------------------------
# Encode
# ---------------------------------------------------------------------------

def frame_to_dict(frame: Frame) -> dict[str, Any]:
    """Convert a frame dataclass to its wire dict.

    Optional fields that are ``None`` are omitted.

    Raises:
        TypeError: If frame is not a known frame type.
    """
    if isinstance(frame, JoinFrame):
        obj: dict[str, Any] = {"type": "join"}
    elif isinstance(frame, LeaveFrame):
        obj = {"type": "leave"}
    elif isinstance(frame, MessageFrame):
        obj = {
            "type": "message",
            "content": frame.content,
            "timestamp": frame.timestamp,
            "attachments": list(frame.attachments),
        }
        _put_optional(obj, "id", frame.id)
        _put_optional(obj, "senderName", frame.sender_name)
        _put_optional(obj, "clientId", frame.client_id)
    elif isinstance(frame, MemberJoinedFrame):
        obj = {"type": "member_joined"}
        _put_optional(obj, "userName", frame.user_name)
    elif isinstance(frame, MemberLeftFrame):
        obj = {"type": "member_left"}
        _put_optional(obj, "userName", frame.user_name)
    elif isinstance(frame, TypingFrame):
        obj = {"type": "typing"}
        _put_optional(obj, "userName", frame.user_name)
        _put_optional(obj, "timestamp", frame.timestamp)
    elif isinstance(frame, FileUploadedFrame):
        obj = {"type": "file_uploaded", "file": dict(frame.file)}
        _put_optional(obj, "timestamp", frame.timestamp)
    else:
        raise TypeError(f"Unknown frame type: {type(frame)}")

    obj["groupId"] = frame.group_id
    obj["userId"] = frame.user_id
    return obj


def encode_frame(frame: Frame) -> str:
    """Encode a frame dataclass to a JSON text frame.

    Raises:
        TypeError: If frame is not a known frame type.
    """
    return json.dumps(frame_to_dict(frame), ensure_ascii=False)


def _put_optional(obj: dict[str, Any], key: str, value: Any) -> None:
    if value is not None:
        obj[key] = value


# ---------------------------------------------------------------------------
# Decode
# ---------------------------------------------------------------------------

def decode_frame(text: str | bytes) -> InboundFrame:
    """Decode a JSON text frame into a typed frame dataclass.

    Algorithm:
        1. Parse JSON; the top level must be an object.
        2. Read ``type``; missing or non-string type is an error.
        3. Unknown type → UnknownFrame (not an error).
        4. Known type → require ``groupId``/``userId`` plus type-specific fields.

    Args:
        text: Raw JSON from a WebSocket text frame.

    Returns:
        Decoded frame, or UnknownFrame for an unrecognised ``type``.

    Raises:
        ValueError: On invalid JSON, non-object payloads, missing type or missing fields.
    """
    try:
        obj = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ValueError(f"Invalid JSON frame: {exc}") from exc

    if not isinstance(obj, dict):
        raise ValueError(f"Frame must be a JSON object, got {type(obj).__name__}")

    msg_type = obj.get("type")
    if not isinstance(msg_type, str):
        raise ValueError("Frame missing 'type' field")

    decoder = _DECODERS.get(msg_type)
    if decoder is None:
        return UnknownFrame(
            type=msg_type,
            group_id=_optional_str(obj.get("groupId")),
            user_id=_optional_str(obj.get("userId")),
            raw=obj,
        )

    try:
        return decoder(obj)
    except KeyError as exc:
        raise ValueError(f"Frame {msg_type!r} missing field {exc}") from exc


def _optional_str(value: Any) -> str | None:
    return str(value) if value is not None else None


def _text(obj: dict[str, Any], key: str) -> str:
    value = obj[key]
    if not isinstance(value, str):
        raise ValueError(f"{key} must be a string")
    return value


def _optional_text(obj: dict[str, Any], key: str) -> str | None:
    value = obj.get(key)
    if value is not None and not isinstance(value, str):
        raise ValueError(f"{key} must be a string or null")
    return value


def _ids(obj: dict[str, Any]) -> tuple[str, str]:
    group_id = obj["groupId"]
    user_id = obj["userId"]
    if group_id is None or user_id is None:
        raise ValueError("groupId and userId must not be null")
    return str(group_id), str(user_id)


def _decode_join(obj: dict[str, Any]) -> JoinFrame:
    group_id, user_id = _ids(obj)
    return JoinFrame(group_id=group_id, user_id=user_id)


def _decode_leave(obj: dict[str, Any]) -> LeaveFrame:
    group_id, user_id = _ids(obj)
    return LeaveFrame(group_id=group_id, user_id=user_id)


def _decode_message(obj: dict[str, Any]) -> MessageFrame:
    group_id, user_id = _ids(obj)
    attachments = obj.get("attachments") or []
    if not isinstance(attachments, list):
        raise ValueError("message attachments must be a list")
    return MessageFrame(
        group_id=group_id,
        user_id=user_id,
        content=_text(obj, "content"),
        timestamp=_text(obj, "timestamp"),
        id=_optional_str(obj.get("id")),
        sender_name=_optional_text(obj, "senderName"),
        client_id=_optional_text(obj, "clientId"),
        attachments=attachments,
    )


def _decode_member_joined(obj: dict[str, Any]) -> MemberJoinedFrame:
    group_id, user_id = _ids(obj)
    return MemberJoinedFrame(group_id=group_id, user_id=user_id, user_name=_optional_text(obj, "userName"))


def _decode_member_left(obj: dict[str, Any]) -> MemberLeftFrame:
    group_id, user_id = _ids(obj)
    return MemberLeftFrame(group_id=group_id, user_id=user_id, user_name=_optional_text(obj, "userName"))


def _decode_typing(obj: dict[str, Any]) -> TypingFrame:
    group_id, user_id = _ids(obj)
    return TypingFrame(
        group_id=group_id,
        user_id=user_id,
        user_name=_optional_text(obj, "userName"),
        timestamp=_optional_text(obj, "timestamp"),
    )


def _decode_file_uploaded(obj: dict[str, Any]) -> FileUploadedFrame:
    group_id, user_id = _ids(obj)
    file_record = obj["file"]
    if not isinstance(file_record, dict) or not isinstance(file_record.get("name"), str):
        raise ValueError("file_uploaded frame requires a file object with a name")
    _optional_text(file_record, "type")
    _optional_text(file_record, "url")
    return FileUploadedFrame(
        group_id=group_id,
        user_id=user_id,
        file=file_record,
        timestamp=_optional_text(obj, "timestamp"),
    )


_DECODERS = {
    "join": _decode_join,
    "leave": _decode_leave,
    "message": _decode_message,
    "member_joined": _decode_member_joined,
    "member_left": _decode_member_left,
    "typing": _decode_typing,
    "file_uploaded": _decode_file_uploaded,
}
