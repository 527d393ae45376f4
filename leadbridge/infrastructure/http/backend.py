"""Synchronous clients for the CRM export backend and the partners API."""

from __future__ import annotations

from typing import Any, Iterable, Mapping

import requests
from bs4 import BeautifulSoup
from requests import Response, Session

from leadbridge.infrastructure.observability import get_logger

from .errors import UpstreamError

logger = get_logger(__name__)


class BackendClient:
    """CRM lead export API authenticated with an ``X-API-KEY`` header."""

    def __init__(
        self,
        base_url: str,
        api_key: str | None,
        *,
        session: Session | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.session = session or requests.Session()
        self.timeout = timeout

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self.base_url}{path}"
        headers = {"X-API-KEY": self.api_key or ""}
        try:
            response = self.session.request(
                method, url, headers=headers, timeout=self.timeout, **kwargs
            )
        except requests.RequestException as exc:
            logger.error("%s %s failed: %s", method, url, exc)
            raise UpstreamError(f"{method} {path} failed: {exc}") from exc
        self._raise_for_status(response, method, path)
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamError(f"{method} {path} returned invalid JSON") from exc

    def _raise_for_status(self, response: Response, method: str, path: str) -> None:
        if response.status_code >= 400:
            logger.error(
                "%s %s failed with status %s: %s",
                method,
                path,
                response.status_code,
                response.text[:200],
            )
            raise UpstreamError(
                f"{method} {path} failed with status {response.status_code}",
                status=response.status_code,
            )

    def leads_since(self, since: str | None = None) -> list[dict[str, Any]]:
        params = {"since": since} if since else None
        return self._request("GET", "/all", params=params) or []

    def leads_by_ids(self, crm_ids: Iterable[int]) -> list[dict[str, Any]]:
        return self._request("POST", "/by-ids", json=list(crm_ids)) or []

    def transaction_totals(
        self, clients: Iterable[Mapping[str, Any]]
    ) -> list[dict[str, Any]]:
        """Deposit and withdrawal totals per ``{crm_id, since}`` entry."""
        payload = {"clients": [dict(c) for c in clients]}
        return self._request("POST", "/totals", json=payload) or []

    def transactions_by_user_ids(self, user_ids: Iterable[int]) -> list[dict[str, Any]]:
        return (
            self._request("POST", "/transactions-by-user-ids", json=list(user_ids))
            or []
        )


class PartnersClient:
    """Affiliate list and per-user registration lookups on the partners API."""

    def __init__(
        self,
        base_url: str,
        username: str | None,
        password: str | None,
        *,
        session: Session | None = None,
        timeout: float = 10.0,
    ) -> None:
        self.base_url = base_url.rstrip("/") + "/"
        self._username = username or ""
        self._password = password or ""
        self.session = session or requests.Session()
        self.timeout = timeout

    def _get(self, **params: Any) -> Response:
        query = {
            "api_username": self._username,
            "api_password": self._password,
            **params,
        }
        response = self.session.get(self.base_url, params=query, timeout=self.timeout)
        response.raise_for_status()
        return response

    def affiliate_names(self) -> dict[str, str]:
        """Map affiliate id to ``"First Last"``.

        Raises:
            UpstreamError: If the list cannot be fetched.
        """
        try:
            entries = self._get(command="affiliatelist", json=1).json() or []
        except (requests.RequestException, ValueError) as exc:
            logger.error("Fetch affiliates failed: %s", exc)
            raise UpstreamError(f"Fetch affiliates failed: {exc}") from exc
        names = {
            str(entry.get("AffiliateID")): f"{entry.get('FirstName') or ''} {entry.get('LastName') or ''}".strip()
            for entry in entries
            if isinstance(entry, dict)
        }
        logger.info("Loaded %d affiliates", len(names))
        return names

    def registration(self, user_id: str | int) -> dict[str, str]:
        """Return the registration row for a CRM user, ``{}`` when unavailable.

        Tag names are lowercased by the parser, so ``affiliateID`` is read back
        as ``affiliateid``.
        """
        try:
            text = self._get(command="registrations", userid=f"raisefx-{user_id}").text
        except requests.RequestException as exc:
            logger.error("Fetch registration %s failed: %s", user_id, exc)
            return {}
        return parse_registration_row(text)

    def affiliate_label(self, user_id: str | int, names: Mapping[str, str]) -> str:
        affiliate_id = self.registration(user_id).get("affiliateid", "")
        if not affiliate_id:
            return ""
        name = names.get(affiliate_id) or f"ID {affiliate_id}"
        return f"{name} ({affiliate_id})"


def parse_registration_row(xml: str) -> dict[str, str]:
    trimmed = (xml or "").strip()
    if not trimmed or trimmed == "<></>":
        return {}
    soup = BeautifulSoup(trimmed, "html.parser")
    row = soup.find("row")
    if row is None:
        return {}
    return {
        child.name: child.get_text(strip=True)
        for child in row.find_all(recursive=False)
    }


__all__ = ["BackendClient", "PartnersClient", "parse_registration_row"]
