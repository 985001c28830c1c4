"""
Marshall model dataclasses to OpenAPI 3 schema dicts, so the local API
docs are derived from newflow.models rather than written twice.
"""
from __future__ import annotations

import dataclasses
import typing
from typing import Any, Literal, get_args, get_origin

from newflow import models


def _type_to_schema(typ: Any) -> dict[str, Any]:
    if typ is type(None):
        return {"type": "string", "nullable": True}
    origin = get_origin(typ)
    args = get_args(typ)

    # X | None
    if args and type(None) in args:
        inner = next(a for a in args if a is not type(None))
        return {**_type_to_schema(inner), "nullable": True}

    if origin is Literal and args and all(isinstance(a, str) for a in args):
        return {"type": "string", "enum": list(args)}

    if typ in (tuple, list) or origin in (tuple, list):
        return {"type": "array", "items": {"type": "object"}}

    if typ is dict or origin is dict:
        return {"type": "object", "additionalProperties": True}

    primitives = {str: "string", int: "integer", bool: "boolean", float: "number"}
    if typ in primitives:
        return {"type": primitives[typ]}
    return {"type": "object"}


def _dataclass_to_schema(cls: type, aliases: dict[str, str] | None = None) -> dict[str, Any]:
    """Schema from a dataclass's fields; ``aliases`` maps attribute -> JSON key."""
    hints = typing.get_type_hints(cls)
    aliases = aliases or {}
    properties: dict[str, Any] = {}
    for f in dataclasses.fields(cls):
        if f.name.startswith("_"):
            continue
        properties[aliases.get(f.name, f.name)] = _type_to_schema(hints.get(f.name, f.type))
    out: dict[str, Any] = {"type": "object", "properties": properties}
    if cls.__doc__:
        first = cls.__doc__.strip().split("\n")[0]
        if first:
            out["description"] = first
    return out


def _settings_aliases() -> dict[str, str]:
    return {attr: key for key, attr in models.SETTINGS_JSON_KEYS.items()}


def schemas_from_models() -> dict[str, dict[str, Any]]:
    notification = _dataclass_to_schema(models.Notification)
    notification["required"] = ["id", "type", "priority", "timestamp", "read"]
    return {
        "Notification": notification,
        "Settings": _dataclass_to_schema(models.NotificationSettings, _settings_aliases()),
    }


def notification_list_schema() -> dict[str, Any]:
    """GET /notifications response."""
    return {
        "type": "object",
        "properties": {
            "notifications": {"type": "array",
                              "items": {"$ref": "#/components/schemas/Notification"}},
            "unreadCount": {"type": "integer"},
            "isConnected": {"type": "boolean"},
        },
    }


def stats_schema() -> dict[str, Any]:
    """GET /notifications/stats response."""
    counts = {"type": "object", "additionalProperties": {"type": "integer"}}
    return {
        "type": "object",
        "properties": {
            "total": {"type": "integer"},
            "unread": {"type": "integer"},
            "read": {"type": "integer"},
            "byType": counts,
            "byPriority": counts,
        },
    }


def search_outcome_schema() -> dict[str, Any]:
    """POST /patients/search response."""
    patients = {"type": "array", "items": {"type": "object"}}
    return {
        "type": "object",
        "properties": {
            "case": {"type": "string", "enum": list("ABCDEFG")},
            "results": patients,
            "duplicateCandidates": patients,
            "tempUhid": {"type": "string", "nullable": True,
                         "pattern": r"^TEMP-\d{6}-\d{4}$"},
            "patient": {"type": "object", "nullable": True},
        },
    }
