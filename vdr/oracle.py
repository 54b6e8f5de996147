from __future__ import annotations

import logging

import httpx

from .errors import OracleUnavailable
from .models import Version

log = logging.getLogger(__name__)

UP_TO_DATE_CHECK_PATH = "/ISteamApps/UpToDateCheck/v1/"


class SteamVersionOracle:
    """Fetch the currently published version of a Steam app.

    Uses ``ISteamApps/UpToDateCheck`` with ``version=0``; the answer's
    ``required_version`` is the latest build. No retries here: the next
    scheduler tick is the retry.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str = "https://api.steampowered.com",
        timeout_s: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self._transport = transport

    def fetch_version(self, catalog_id: int) -> Version:
        params: dict[str, str | int] = {"appid": int(catalog_id), "version": 0, "format": "json"}
        if self.api_key:
            params["key"] = self.api_key
        url = f"{self.base_url}{UP_TO_DATE_CHECK_PATH}"
        try:
            with httpx.Client(timeout=self.timeout_s, follow_redirects=False, transport=self._transport) as client:
                resp = client.get(url, params=params)
        except httpx.HTTPError as e:
            raise OracleUnavailable(f"appid {catalog_id}: {type(e).__name__}: {e}") from e

        if resp.status_code != 200:
            raise OracleUnavailable(f"appid {catalog_id}: HTTP {resp.status_code}")
        try:
            data = resp.json()
        except ValueError as e:
            raise OracleUnavailable(f"appid {catalog_id}: invalid JSON") from e

        body = data.get("response") if isinstance(data, dict) else None
        if not isinstance(body, dict) or body.get("success") is not True:
            message = body.get("error") or body.get("message") if isinstance(body, dict) else None
            raise OracleUnavailable(f"appid {catalog_id}: unsuccessful response ({message or data!r})")
        version = body.get("required_version")
        if isinstance(version, bool) or not isinstance(version, (int, str)):
            raise OracleUnavailable(f"appid {catalog_id}: no required_version in response")
        log.debug("Steam reports appid %s at version %s", catalog_id, version)
        return version
