"""Shared FastAPI dependencies for the reporting server."""

from __future__ import annotations

import asyncio
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status

from leadbridge.app.config import Settings
from leadbridge.services.reporting import ReportStore

__all__ = [
    "get_access_lock",
    "get_report_store",
    "get_settings",
    "require_api_key",
    # Annotated dependency types
    "AccessLockDep",
    "ReportStoreDep",
    "SettingsDep",
]


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_report_store(request: Request) -> ReportStore:
    return request.app.state.store


def get_access_lock(request: Request) -> asyncio.Lock:
    """Lock guarding the read-then-advance of the client access cursor."""
    return request.app.state.access_lock


def require_api_key(
    settings: Annotated[Settings, Depends(get_settings)],
    x_api_key: Annotated[str | None, Header()] = None,
) -> None:
    """Reject requests without the shared secret.

    Every request is refused when the server has no key configured.
    """
    expected = settings.reports_api_key
    if not expected or x_api_key != expected:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")


SettingsDep = Annotated[Settings, Depends(get_settings)]
ReportStoreDep = Annotated[ReportStore, Depends(get_report_store)]
AccessLockDep = Annotated[asyncio.Lock, Depends(get_access_lock)]
