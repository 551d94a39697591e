"""Provenance wrapper persisted around every stored payload."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from datetime import UTC, datetime
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as distribution_version
from typing import Any, Generic, TypeVar

import rfc8785
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

PayloadT = TypeVar("PayloadT")

DISTRIBUTION_NAME = "filedb"


class DocumentEnvelope(BaseModel, Generic[PayloadT]):
    """On-disk document: metadata plus the caller's payload.

    Only ``payload`` is required on decode.  The metadata fields are
    informational, so a missing or malformed value decodes as ``None``
    instead of failing the read, and unknown top-level keys are dropped.
    """

    model_config = ConfigDict(extra="ignore")

    version: str | None = None
    commit: str | None = None
    uid: str | None = None
    time: datetime | None = None
    payload: PayloadT

    @field_validator("version", "commit", "uid", "time", mode="wrap")
    @classmethod
    def _informational(cls, value: Any, handler: Any) -> Any:
        try:
            return handler(value)
        except ValidationError:
            return None


@dataclass(frozen=True)
class Provenance:
    version: str
    commit: str
    uid: str | None
    time: datetime


def package_version() -> str:
    try:
        return distribution_version(DISTRIBUTION_NAME)
    except PackageNotFoundError:
        return "0.0.0"


def current_uid() -> str | None:
    """Best-effort uid of the acting user; None where it cannot be resolved."""
    try:
        return str(os.getuid())
    except (AttributeError, OSError):
        return None


def current_provenance(build_commit: str) -> Provenance:
    return Provenance(
        version=package_version(),
        commit=build_commit,
        uid=current_uid(),
        time=datetime.now(UTC),
    )


def wrap(payload_type: Any, value: Any, provenance: Provenance) -> DocumentEnvelope[Any]:
    """Build an envelope for *value*, validating it against *payload_type*.

    Raises:
        pydantic.ValidationError: If *value* is not a valid *payload_type*.
    """
    return DocumentEnvelope[payload_type](
        version=provenance.version,
        commit=provenance.commit,
        uid=provenance.uid,
        time=provenance.time,
        payload=value,
    )


def encode(envelope: DocumentEnvelope[Any]) -> str:
    """Render *envelope* as RFC 8785 JSON terminated by a newline.

    JCS cannot carry integers outside the IEEE 754 safe range, so a payload
    holding one is written as sorted, compact JSON instead.  Both forms
    decode the same way.

    Raises:
        TypeError, ValueError: If the payload cannot be represented as JSON.
    """
    data = envelope.model_dump(mode="json", warnings="error")
    if data.get("uid") is None:
        data.pop("uid", None)
    try:
        text = rfc8785.dumps(data).decode("utf-8")
    except rfc8785.IntegerDomainError:
        text = json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return text + "\n"


def decode(payload_type: Any, text: str | bytes) -> DocumentEnvelope[Any]:
    """Parse a stored document, validating the payload as *payload_type*.

    Raises:
        pydantic.ValidationError: If the text is not JSON, ``payload`` is
            missing, or the payload does not match *payload_type*.
    """
    return DocumentEnvelope[payload_type].model_validate_json(text)
