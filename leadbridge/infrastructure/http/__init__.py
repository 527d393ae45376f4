"""HTTP adapters for leadbridge.

Clients for the affiliate report API (async, httpx), the CRM export backend,
the partners API and the board GraphQL API (sync, requests).
"""

from .affiliate import AffiliateReportClient
from .backend import BackendClient, PartnersClient, parse_registration_row
from .board import BoardClient, BoardColumn, BoardItem, BoardState
from .errors import AuthenticationError, BoardAPIError, UpstreamError

__all__ = [
    "AffiliateReportClient",
    "AuthenticationError",
    "BackendClient",
    "BoardAPIError",
    "BoardClient",
    "BoardColumn",
    "BoardItem",
    "BoardState",
    "PartnersClient",
    "UpstreamError",
    "parse_registration_row",
]
