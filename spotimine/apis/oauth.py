import logging
import urllib.parse
import webbrowser

import requests

from typing import Callable, Optional

from . import constants
from .accounts import Account
from .constants import _get_spotify_client_id, ACCOUNTS_BASE, REQUEST_TIMEOUT, SCOPES
from .errors import ParseError, TokenExchangeError, TokenRefreshError
from .httpServer import _run_temp_server_and_wait_for_code
from .utilities import _code_challenge_from_verifier, _now, _random_string

logger = logging.getLogger(__name__)

TOKEN_URL = f"{ACCOUNTS_BASE}/api/token"


def _token_expired(account: Account, now: Optional[int] = None) -> bool:
    # Without a refresh token there is nothing we could do about expiry anyway.
    if not account.refresh_token:
        return False
    now = _now() if now is None else now
    return now > account.expires_at


def _ensure_token(account: Account, now: Optional[int] = None) -> str:
    if _token_expired(account, now):
        logger.debug("Access token expired, refreshing")
        _refresh_token(account, now)
    return account.access_token


def _refresh_token(account: Account, now: Optional[int] = None) -> Account:
    if not account.refresh_token:
        raise TokenRefreshError("Account has no refresh token. Try re-adding this account with 'adduser'.")
    data = {
        "client_id": _get_spotify_client_id(),
        "grant_type": "refresh_token",
        "refresh_token": account.refresh_token,
    }
    try:
        r = requests.post(TOKEN_URL, data=data, timeout=REQUEST_TIMEOUT)
    except requests.RequestException as e:
        raise TokenRefreshError(f"Failed to send token refresh request: {e}") from e
    if r.status_code != 200:
        raise TokenRefreshError(
            f"Token refresh failed: {r.status_code} {r.text}. "
            "The account may need to be re-added with 'adduser'."
        )
    try:
        fresh = Account.from_token_response(r.json(), now)
    except ValueError as e:
        # ParseError is not a ValueError; this is the JSON decode failing.
        raise TokenRefreshError(f"Token refresh returned a non-JSON body: {r.text}") from e
    except ParseError as e:
        raise TokenRefreshError(f"Token refresh response was incomplete: {e}") from e

    account.access_token = fresh.access_token
    account.expires_at = fresh.expires_at
    # Keep the original refresh_token if a new one isn't returned
    if fresh.refresh_token:
        account.refresh_token = fresh.refresh_token
    if fresh.scope:
        account.scope = fresh.scope
    account.save()
    logger.debug("Refreshed access token, valid until %d", account.expires_at)
    return account


def _authorization_url(challenge: str, state: str, redirect_uri: str) -> str:
    auth_params = {
        "client_id": _get_spotify_client_id(),
        "response_type": "code",
        "redirect_uri": redirect_uri,
        "scope": " ".join(SCOPES),
        "code_challenge_method": "S256",
        "code_challenge": challenge,
        "state": state,
    }
    return f"{ACCOUNTS_BASE}/authorize?{urllib.parse.urlencode(auth_params)}"


def _authorize_with_pkce(
    open_browser: Callable[[str], bool] = webbrowser.open,
    now: Optional[int] = None,
    redirect_uri: Optional[str] = None,
) -> Account:
    redirect_uri = redirect_uri or constants.REDIRECT_URI
    verifier = _random_string(64)
    challenge = _code_challenge_from_verifier(verifier)
    state = _random_string(16)

    auth_url = _authorization_url(challenge, state, redirect_uri)
    code = _run_temp_server_and_wait_for_code(state, auth_url, open_browser=open_browser, redirect_uri=redirect_uri)

    token_data = {
        "client_id": _get_spotify_client_id(),
        "grant_type": "authorization_code",
        "code": code,
        "redirect_uri": redirect_uri,
        "code_verifier": verifier,
    }
    try:
        tok = requests.post(TOKEN_URL, data=token_data, timeout=REQUEST_TIMEOUT)
    except requests.RequestException as e:
        raise TokenExchangeError(f"Failed to send token request: {e}") from e
    if tok.status_code != 200:
        raise TokenExchangeError(f"Token exchange failed: {tok.status_code} {tok.text}")
    try:
        account = Account.from_token_response(tok.json(), now)
    except ValueError as e:
        raise TokenExchangeError(f"Token exchange returned a non-JSON body: {tok.text}") from e
    except ParseError as e:
        raise TokenExchangeError(f"Token exchange response was incomplete: {e}") from e
    logger.info("Got token response")
    return account
