"""
OAuth2 client-credentials authentication against the tenant token endpoint.
"""

import logging

import backoff
import requests

from .exceptions import APIConnectionError, AuthenticationError, ResponseDecodeError

logger = logging.getLogger(__name__)


@backoff.on_exception(
    backoff.expo,
    APIConnectionError,
    max_tries=3,
    base=1,
    max_value=60
)
def fetch_access_token(token_endpoint: str, client_id: str, client_secret: str, timeout: int = 30) -> str:
    """Exchange client credentials for a bearer access token"""
    data = {
        "grant_type": "client_credentials",
        "client_id": client_id,
        "client_secret": client_secret
    }

    logger.debug(f"Requesting access token from {token_endpoint}")
    try:
        response = requests.post(token_endpoint, data=data, timeout=timeout)
    except requests.exceptions.RequestException as e:
        raise APIConnectionError(f"Failed to reach token endpoint: {str(e)}", endpoint=token_endpoint)

    if response.status_code in (400, 401, 403):
        raise AuthenticationError(
            "Client credentials were rejected. Please check KUSARI_CLIENT_ID and KUSARI_CLIENT_SECRET",
            status_code=response.status_code,
            endpoint=token_endpoint
        )
    if response.status_code != 200:
        raise APIConnectionError(
            f"HTTP {response.status_code}: {response.text[:200]}",
            status_code=response.status_code,
            endpoint=token_endpoint
        )

    try:
        return response.json()["access_token"]
    except (ValueError, KeyError, TypeError):
        raise ResponseDecodeError(
            "Token endpoint response did not contain an access_token",
            endpoint=token_endpoint
        )


def authorized_session(access_token: str) -> requests.Session:
    """Session that sends the bearer token with every request"""
    session = requests.Session()
    session.headers.update({"Authorization": f"Bearer {access_token}"})
    return session
