"""Async client for the affiliate platform's registration report.

Two calls are needed per pull: :meth:`AffiliateReportClient.authenticate`
exchanges the account credentials for a bearer token, and
:meth:`AffiliateReportClient.fetch_registration_report` downloads every
registration in a date range. Failures are logged with the request context and
re-raised as :class:`UpstreamError`.
"""

from __future__ import annotations

from typing import Any

import httpx

from leadbridge.infrastructure.observability import get_logger

from .errors import AuthenticationError, UpstreamError

logger = get_logger(__name__)

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


class AffiliateReportClient:
    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        base_url: str,
        username: str,
        password: str,
        admin_url: str = "RaiseFX",
        affiliate_id: str | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._client = client
        self.base_url = base_url
        self._username = username
        self._password = password
        self.admin_url = admin_url
        self.affiliate_id = affiliate_id
        self.timeout = timeout

    async def authenticate(self) -> str:
        """Return a bearer token for the report endpoint.

        Raises:
            AuthenticationError: If the request fails or no token comes back.
        """
        url = f"{self.base_url}?command=authenticate"
        form = {"user": self._username, "url": self.admin_url, "pass": self._password}
        headers = {"admin_url": self.admin_url, "Content-Type": FORM_CONTENT_TYPE}
        try:
            response = await self._client.post(
                url, data=form, headers=headers, timeout=self.timeout
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            logger.error("POST %s failed status=%s message=%s", url, status, exc)
            raise AuthenticationError(f"Authentication failed: {exc}", status=status) from exc
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("POST %s failed status=N/A message=%s", url, exc)
            raise AuthenticationError(f"Authentication failed: {exc}") from exc

        token = payload.get("token") if isinstance(payload, dict) else None
        if not token:
            raise AuthenticationError("Authentication response contained no token")
        return str(token)

    def report_params(self, start_date: str, end_date: str) -> dict[str, Any]:
        params: dict[str, Any] = {
            "command": "processregreport",
            "daterange": "registrationdate",
            "startDate": start_date,
            "endDate": end_date,
            "BTA": "true",
            "TrackingCode": "true",
            "QualificationDate": "true",
            "json": 1,
        }
        if self.affiliate_id:
            params["filter-affiliate"] = self.affiliate_id
        return params

    async def fetch_registration_report(
        self, token: str, start_date: str, end_date: str
    ) -> list[dict[str, Any]]:
        """Download raw registration rows between two ``MM/DD/YYYY`` dates."""
        params = self.report_params(start_date, end_date)
        headers = {
            "Accept": "application/json",
            "Authorization": f"Bearer {token}",
            "admin_url": self.admin_url,
        }
        try:
            response = await self._client.get(
                self.base_url, params=params, headers=headers, timeout=self.timeout
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            logger.error(
                "GET %s params=%s failed status=%s message=%s",
                self.base_url,
                params,
                status,
                exc,
            )
            raise UpstreamError(f"Registration report failed: {exc}", status=status) from exc
        except (httpx.HTTPError, ValueError) as exc:
            logger.error(
                "GET %s params=%s failed status=N/A message=%s",
                self.base_url,
                params,
                exc,
            )
            raise UpstreamError(f"Registration report failed: {exc}") from exc

        rows = payload.get("Registrations") if isinstance(payload, dict) else None
        return list(rows or [])


__all__ = ["AffiliateReportClient"]
