"""Optional prefill of participant details from an external identity directory."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import quote

import requests

from backend.domain.constraints import require_text
from backend.domain.errors import NotFoundError, UpstreamError
from backend.domain.models import Gender
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)

_FEMALE_MARKERS = {"f", "female", "girl", "girls"}


@dataclass(frozen=True)
class DirectoryPrefill:
    """Advisory participant details; still validated on Create."""

    external_id: Optional[str]
    name: Optional[str]
    gender: Optional[Gender]
    contact_number: Optional[str]

    def to_dict(self) -> dict[str, Optional[str]]:
        return {
            "external_id": self.external_id,
            "name": self.name,
            "gender": self.gender.value if self.gender is not None else None,
            "contact_number": self.contact_number,
        }


class DirectoryLookupService:
    """Queries ``GET {directory_lookup_url}/{identifier}``."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._session = session or requests.Session()

    @property
    def enabled(self) -> bool:
        return bool(self._settings.directory_lookup_url)

    def lookup(self, identifier: str) -> DirectoryPrefill:
        clean_identifier = require_text(identifier, "Identifier")
        if not self.enabled:
            raise UpstreamError("Directory lookup is not configured", status_code=503)

        base_url = str(self._settings.directory_lookup_url).rstrip("/")
        url = f"{base_url}/{quote(clean_identifier, safe='')}"
        try:
            response = self._session.get(
                url,
                timeout=self._settings.directory_lookup_timeout_seconds,
            )
        except requests.exceptions.RequestException as exc:
            logger.warning("Directory lookup for %s failed: %s", clean_identifier, exc)
            raise UpstreamError("Directory lookup failed") from exc

        if response.status_code == 404:
            raise NotFoundError("Identifier not found in directory")
        try:
            response.raise_for_status()
            body = response.json()
        except (requests.exceptions.HTTPError, ValueError) as exc:
            logger.warning(
                "Directory lookup for %s returned status %s",
                clean_identifier,
                response.status_code,
            )
            raise UpstreamError("Directory lookup failed") from exc

        record = self._unwrap(body)
        if not record:
            raise NotFoundError("Identifier not found in directory")
        return self._to_prefill(record)

    @staticmethod
    def _unwrap(body: Any) -> dict[str, Any]:
        # Directory responses come either bare or as {"success": ..., "data": {...}}.
        if isinstance(body, dict) and isinstance(body.get("data"), dict):
            return body["data"]
        if isinstance(body, dict) and body.get("success") is False:
            return {}
        return body if isinstance(body, dict) else {}

    def _to_prefill(self, record: dict[str, Any]) -> DirectoryPrefill:
        raw_gender = record.get("gender")
        gender: Optional[Gender] = None
        if raw_gender:
            gender = (
                Gender.FEMALE
                if str(raw_gender).strip().lower() in _FEMALE_MARKERS
                else Gender.MALE
            )

        raw_phone = record.get("contactNumber") or record.get("phone")
        contact_number = None
        if raw_phone:
            digits = re.sub(r"\D", "", str(raw_phone))
            contact_number = digits[-10:] or None

        raw_id = record.get("id")
        external_id = None
        if raw_id:
            external_id = str(raw_id).strip()
            prefix = self._settings.directory_id_prefix
            if prefix and external_id.upper().startswith(prefix.upper()):
                external_id = external_id[len(prefix):]
            external_id = external_id.upper() or None

        name = str(record["name"]).strip() if record.get("name") else None
        return DirectoryPrefill(
            external_id=external_id,
            name=name or None,
            gender=gender,
            contact_number=contact_number,
        )
