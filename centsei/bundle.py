from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass
from typing import Any, List, Mapping, Sequence

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from centsei.entries import MasterEntry
from centsei.reminders import resolve_timezone
from centsei.weekly_balances import ROLLOVER_CARRYOVER, normalize_rollover


class InvalidBundleError(ValueError):
    """Raised when an exported or shared bundle cannot be loaded."""


class BundlePayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    entries: List[dict[str, Any]]
    rollover_preference: str = Field(
        ROLLOVER_CARRYOVER,
        validation_alias=AliasChoices("rolloverPreference", "rollover", "rollover_preference"),
    )
    timezone: str = "UTC"


@dataclass(frozen=True)
class Bundle:
    entries: tuple[MasterEntry, ...]
    rollover_preference: str
    timezone: str


def export_bundle(
    entries: Sequence[MasterEntry],
    rollover_preference: str,
    timezone: str,
) -> dict[str, Any]:
    return {
        "entries": [entry.to_dict() for entry in entries],
        "rolloverPreference": normalize_rollover(rollover_preference),
        "timezone": timezone,
    }


def load_bundle(payload: Mapping[str, Any]) -> Bundle:
    try:
        parsed = BundlePayload.model_validate(payload)
    except ValidationError as exc:
        raise InvalidBundleError("Invalid or corrupted data file.") from exc
    try:
        entries = tuple(MasterEntry.from_dict(item) for item in parsed.entries)
        rollover = normalize_rollover(parsed.rollover_preference)
        resolve_timezone(parsed.timezone)
    except (KeyError, ValueError) as exc:
        raise InvalidBundleError(f"Invalid or corrupted data file: {exc}") from exc
    return Bundle(entries=entries, rollover_preference=rollover, timezone=parsed.timezone)


def encode_share_token(bundle: Mapping[str, Any]) -> str:
    raw = json.dumps(bundle, separators=(",", ":"), sort_keys=True).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii")


def decode_share_token(token: str) -> Bundle:
    try:
        padded = token + "=" * (-len(token) % 4)
        payload = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
    except (binascii.Error, UnicodeError, json.JSONDecodeError) as exc:
        raise InvalidBundleError(
            "The shared link is invalid or corrupted. Please ask for a new link."
        ) from exc
    if not isinstance(payload, dict):
        raise InvalidBundleError(
            "The shared link is invalid or corrupted. Please ask for a new link."
        )
    return load_bundle(payload)
