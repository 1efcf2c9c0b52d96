from __future__ import annotations

import copy
import datetime as dt
import json
from dataclasses import dataclass
from typing import Any

PLACEHOLDER_MESSAGE = "No message provided"

# Payload keys that map onto LogRecord fields; everything else lands in additional_data.
KNOWN_FIELDS = ("level", "script", "source", "message", "timestamp", "fileName", "lineNo")


def _utc_now_iso() -> str:
    return dt.datetime.now(dt.UTC).isoformat()


def _as_optional_str(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return str(value)


def _as_message(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


@dataclass(frozen=True)
class LogRecord:
    level: str | None
    script: str | None
    message: str
    timestamp: str
    file_name: str | None = None
    line_no: int | str | None = None
    additional_data: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "level": self.level,
            "script": self.script,
            "message": self.message,
            "timestamp": self.timestamp,
        }
        if self.file_name is not None:
            data["fileName"] = self.file_name
        if self.line_no is not None:
            data["lineNo"] = self.line_no
        data["additionalData"] = copy.deepcopy(self.additional_data)
        return data

    @property
    def application(self) -> str:
        extra = self.additional_data or {}
        value = extra.get("application") or self.script
        return str(value) if value else "default"

    @property
    def module(self) -> str:
        extra = self.additional_data or {}
        value = extra.get("module")
        return str(value) if value else "general"


def normalize_log_payload(payload: Any, *, now: str | None = None) -> LogRecord:
    """Turn an arbitrary inbound /log body into a LogRecord.

    Known fields are lifted onto the record, every other key is kept in
    ``additional_data``. A payload without a message (or one that is not a JSON
    object at all) is still accepted: it gets a placeholder message and the
    untouched payload under ``additional_data["originalPayload"]``.
    """

    timestamp_default = now or _utc_now_iso()
    # The record owns its data; nothing the producer holds may alias it.
    payload = copy.deepcopy(payload)
    if not isinstance(payload, dict):
        return LogRecord(
            level=None,
            script=None,
            message=PLACEHOLDER_MESSAGE,
            timestamp=timestamp_default,
            additional_data={"originalPayload": payload},
        )

    extra = {key: value for key, value in payload.items() if key not in KNOWN_FIELDS}
    script = payload.get("script")
    if script is None:
        script = payload.get("source")
    elif "source" in payload:
        extra["source"] = payload["source"]

    raw_message = payload.get("message")
    if raw_message is None:
        message = PLACEHOLDER_MESSAGE
        extra["originalPayload"] = copy.deepcopy(payload)
    else:
        message = _as_message(raw_message)

    line_no = payload.get("lineNo")
    if line_no is not None and not isinstance(line_no, (int, str)):
        line_no = str(line_no)

    return LogRecord(
        level=_as_optional_str(payload.get("level")),
        script=_as_optional_str(script),
        message=message,
        timestamp=_as_optional_str(payload.get("timestamp")) or timestamp_default,
        file_name=_as_optional_str(payload.get("fileName")),
        line_no=line_no,
        additional_data=extra or None,
    )
