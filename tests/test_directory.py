from __future__ import annotations

from dataclasses import replace

import pytest
import requests

from backend.domain.errors import NotFoundError, UpstreamError
from backend.domain.models import Gender
from backend.services.directory_service import DirectoryLookupService
from backend.utils.config import get_settings


class FakeResponse:
    def __init__(self, status_code: int = 200, body=None) -> None:
        self.status_code = status_code
        self._body = body

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} error")

    def json(self):
        if isinstance(self._body, Exception):
            raise self._body
        return self._body


class FakeSession:
    def __init__(self, response=None, error: Exception | None = None) -> None:
        self.response = response
        self.error = error
        self.calls: list[tuple[str, float]] = []

    def get(self, url: str, timeout: float):
        self.calls.append((url, timeout))
        if self.error is not None:
            raise self.error
        return self.response


def _service(session: FakeSession, url: str | None = "https://directory.example/api/lookup/") -> DirectoryLookupService:
    get_settings.cache_clear()
    settings = replace(
        get_settings(),
        directory_lookup_url=url,
        directory_lookup_timeout_seconds=2.5,
        directory_id_prefix="EVT",
    )
    return DirectoryLookupService(settings=settings, session=session)


def test_lookup_normalizes_wrapped_record() -> None:
    session = FakeSession(
        FakeResponse(
            body={
                "success": True,
                "data": {
                    "id": "evt1234ab",
                    "name": " Divya Shree ",
                    "gender": "GIRL",
                    "contactNumber": "+91 98765-43210",
                },
            }
        )
    )

    prefill = _service(session).lookup("9876543210")

    assert session.calls == [("https://directory.example/api/lookup/9876543210", 2.5)]
    assert prefill.external_id == "1234AB"
    assert prefill.name == "Divya Shree"
    assert prefill.gender is Gender.FEMALE
    assert prefill.contact_number == "9876543210"
    assert prefill.to_dict()["gender"] == "Female"


def test_lookup_accepts_bare_record_with_partial_fields() -> None:
    session = FakeSession(FakeResponse(body={"name": "Arun", "gender": "M"}))

    prefill = _service(session).lookup("arun@example.com")

    assert session.calls[0][0].endswith("/arun%40example.com")
    assert prefill.gender is Gender.MALE
    assert prefill.external_id is None
    assert prefill.contact_number is None


def test_lookup_not_found() -> None:
    with pytest.raises(NotFoundError):
        _service(FakeSession(FakeResponse(status_code=404))).lookup("missing")
    with pytest.raises(NotFoundError):
        _service(FakeSession(FakeResponse(body={"success": False}))).lookup("missing")


@pytest.mark.parametrize(
    "session",
    [
        FakeSession(error=requests.exceptions.ConnectTimeout("timed out")),
        FakeSession(FakeResponse(status_code=500, body={})),
        FakeSession(FakeResponse(body=ValueError("not json"))),
    ],
)
def test_lookup_upstream_failures(session) -> None:
    with pytest.raises(UpstreamError) as excinfo:
        _service(session).lookup("X001")
    assert excinfo.value.status_code == 502


def test_lookup_disabled_without_url() -> None:
    service = _service(FakeSession(), url=None)

    assert service.enabled is False
    with pytest.raises(UpstreamError) as excinfo:
        service.lookup("X001")
    assert excinfo.value.status_code == 503
