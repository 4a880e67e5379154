"""eBay OAuth client-credentials token provider."""

from __future__ import annotations

import base64
import logging

import httpx

from collectopedia.core.config import EbayConfig
from collectopedia.core.exceptions import CredentialsError, UpstreamError

logger = logging.getLogger(__name__)


class EbayTokenProvider:
    """Obtains application bearer tokens via the client-credentials grant.

    A fresh token is requested on every call; nothing is cached between
    price queries.

    Parameters
    ----------
    config : EbayConfig
        Supplies app id, cert id, token URL and scope.
    client : httpx.AsyncClient
        Shared HTTP client. Owned by the caller.
    """

    def __init__(self, config: EbayConfig, client: httpx.AsyncClient) -> None:
        self._config = config
        self._client = client

    @property
    def has_credentials(self) -> bool:
        return self._config.has_credentials

    def _basic_auth(self) -> str:
        pair = f"{self._config.app_id}:{self._config.cert_id}"
        return base64.b64encode(pair.encode("utf-8")).decode("ascii")

    async def get_token(self) -> str:
        """Request a bearer token.

        Raises:
            CredentialsError: app id or cert id is not configured. No request
                is sent.
            UpstreamError: Transport failure, non-2xx status, or a body
                without ``access_token``.
        """
        if not self.has_credentials:
            missing = [
                name
                for name, value in (
                    ("app_id", self._config.app_id),
                    ("cert_id", self._config.cert_id),
                )
                if not value
            ]
            raise CredentialsError(
                "eBay app id and cert id must be configured to request a token",
                context={"missing": missing},
            )

        url = self._config.token_url
        logger.debug("Requesting eBay token from %s", url)
        try:
            response = await self._client.post(
                url,
                data={"grant_type": "client_credentials", "scope": self._config.scope},
                headers={
                    "Content-Type": "application/x-www-form-urlencoded",
                    "Authorization": f"Basic {self._basic_auth()}",
                },
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                "eBay token request failed: %s %s",
                e.response.status_code,
                e.response.text[:200],
            )
            raise UpstreamError(
                f"eBay token request returned HTTP {e.response.status_code}",
                context={
                    "source": "ebay_oauth",
                    "url": url,
                    "status_code": e.response.status_code,
                },
            ) from e
        except httpx.RequestError as e:
            logger.error("eBay token request error: %s", e)
            raise UpstreamError(
                f"eBay token request failed: {e}",
                context={"source": "ebay_oauth", "url": url, "status_code": None},
            ) from e
        except ValueError as e:
            raise UpstreamError(
                "eBay token response was not valid JSON",
                context={"source": "ebay_oauth", "url": url, "status_code": response.status_code},
            ) from e

        token = payload.get("access_token") if isinstance(payload, dict) else None
        if not token:
            raise UpstreamError(
                "eBay token response did not contain an access_token",
                context={"source": "ebay_oauth", "url": url, "status_code": response.status_code},
            )
        logger.debug("eBay token response: %s", response.status_code)
        return token
