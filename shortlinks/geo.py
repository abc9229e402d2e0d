"""Coarse IP geolocation used to tag click events with a country code."""

import ipaddress
import logging

import httpx

from shortlinks.config import Settings

__all__ = ["GeoLocator"]

logger = logging.getLogger(__name__)


class GeoLocator:
    """Look up the ISO country code for a client address.

    Talks to an ip-api compatible endpoint (``{"status": "success",
    "countryCode": "IN"}``). Private, loopback and malformed addresses are not
    looked up. Every failure yields ``None``; callers fall back to "unknown".

    Usage:
        geo = GeoLocator.from_settings(settings)
        country = await geo.lookup_country("8.8.8.8")
        await geo.aclose()
    """

    def __init__(
        self,
        api_url: str,
        *,
        timeout: float = 2.0,
        enabled: bool = True,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_url = api_url
        self._enabled = enabled
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @classmethod
    def from_settings(cls, settings: Settings) -> "GeoLocator":
        return cls(
            settings.GEOIP_API_URL,
            timeout=settings.GEOIP_TIMEOUT_SECONDS,
            enabled=settings.GEOIP_ENABLED,
        )

    async def lookup_country(self, ip_address: str | None) -> str | None:
        if not self._enabled or not ip_address or not self._is_public(ip_address):
            return None

        try:
            response = await self._client.get(
                self._api_url.format(ip=ip_address),
                params={"fields": "status,countryCode"},
            )
            if response.status_code != 200:
                return None
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.debug(f"Geolocation lookup failed for {ip_address}: {exc}")
            return None

        if not isinstance(data, dict) or data.get("status") != "success":
            return None
        return data.get("countryCode") or None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    @staticmethod
    def _is_public(ip_address: str) -> bool:
        try:
            address = ipaddress.ip_address(ip_address)
        except ValueError:
            return False
        return not (address.is_private or address.is_loopback or address.is_link_local or address.is_reserved)
