"""OAuth2 authorization-code flow for obtaining a Dropbox bearer token.

Used once, at setup time: the user visits authorize_url(), approves the app,
and pastes the displayed code; exchange_code() trades it for the long-lived
access token the storage backend is configured with.
"""

from typing import Optional
from urllib.parse import urlencode

import httpx

from dropbox_storage.core.config import settings
from dropbox_storage.core.errors import ErrorCode, config_error
from dropbox_storage.core.logging_config import get_logger


logger = get_logger(__name__)

_OP = "core/oauth.exchange_code"


def authorize_url(app_key: str, state: str = "state", base_url: Optional[str] = None) -> str:
    """Build the URL a user opens to grant access and receive a code.

    Args:
        app_key: Dropbox app key (OAuth2 client id)
        state: Opaque value echoed back by Dropbox
        base_url: Authorize endpoint, defaults to DROPBOX_OAUTH_AUTHORIZE_URL

    Returns:
        str: Authorization URL
    """
    query = urlencode({"client_id": app_key, "response_type": "code", "state": state})
    return f"{base_url or settings.DROPBOX_OAUTH_AUTHORIZE_URL}?{query}"


async def exchange_code(
    code: str,
    app_key: str,
    app_secret: str,
    client: Optional[httpx.AsyncClient] = None,
    token_url: Optional[str] = None,
) -> str:
    """Exchange an authorization code for an access token.

    Args:
        code: Authorization code shown to the user by Dropbox
        app_key: Dropbox app key
        app_secret: Dropbox app secret
        client: Optional shared HTTP client
        token_url: Token endpoint, defaults to DROPBOX_OAUTH_TOKEN_URL

    Returns:
        str: Bearer access token

    Raises:
        ConfigurationError: If the exchange fails for any reason
    """
    url = token_url or settings.DROPBOX_OAUTH_TOKEN_URL
    form = {
        "grant_type": "authorization_code",
        "code": code,
        "client_id": app_key,
        "client_secret": app_secret,
    }

    logger.debug("oauth_exchange_started", url=url)

    try:
        if client is not None:
            response = await client.post(url, data=form)
        else:
            async with httpx.AsyncClient() as own_client:
                response = await own_client.post(url, data=form)
    except httpx.RequestError as exc:
        logger.error("oauth_exchange_request_error", url=url, error=str(exc))
        raise config_error(
            _OP,
            ErrorCode.CONFIG_TOKEN_EXCHANGE_FAILED,
            f"token endpoint unreachable: {exc}",
        ) from exc

    if response.status_code != 200:
        logger.error(
            "oauth_exchange_failed",
            status_code=response.status_code,
            response=response.text[:200],
        )
        raise config_error(
            _OP,
            ErrorCode.CONFIG_TOKEN_EXCHANGE_FAILED,
            f"token endpoint returned {response.status_code}",
            {"http_status": response.status_code, "body": response.text[:200]},
        )

    try:
        token = response.json()["access_token"]
    except (ValueError, KeyError, TypeError) as exc:
        raise config_error(
            _OP,
            ErrorCode.CONFIG_TOKEN_EXCHANGE_FAILED,
            "token endpoint response has no access_token",
        ) from exc

    if not isinstance(token, str) or not token:
        raise config_error(
            _OP,
            ErrorCode.CONFIG_TOKEN_EXCHANGE_FAILED,
            "token endpoint returned an empty access_token",
        )

    logger.info("oauth_exchange_success")
    return token
