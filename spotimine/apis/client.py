import logging
import time

import requests

from typing import Any, Callable, Optional

from .accounts import Account
from .constants import API_BASE, DEFAULT_RETRY_AFTER, REQUEST_TIMEOUT
from .errors import (
    ClientError,
    ForbiddenError,
    InvalidJSONError,
    ServerError,
    TransportError,
    UnknownStatusError,
)
from .oauth import _ensure_token, _refresh_token

logger = logging.getLogger(__name__)

RATE_LIMITED = (423, 429)


def _retry_after(resp: requests.Response) -> int:
    try:
        return max(0, int(resp.headers.get("Retry-After", DEFAULT_RETRY_AFTER)))
    except (TypeError, ValueError):
        return DEFAULT_RETRY_AFTER


def _api_request(
    method: str,
    endpoint: str,
    account: Account,
    params: Optional[dict] = None,
    json_body: Any = None,
    data: Optional[dict] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> requests.Response:
    """
    Send one logical request to the Web API on behalf of `account`.

    Refreshes the token up front when it has expired, retries once after a
    forced refresh on 401, and waits out 423/429 for as long as the server
    keeps asking. Everything else is raised as an ApiError subclass.
    """
    method = method.upper()
    url = endpoint if endpoint.startswith("http") else f"{API_BASE}/{endpoint.lstrip('/')}"
    reauthed = False

    while True:
        headers = {"Authorization": f"Bearer {_ensure_token(account)}"}
        try:
            resp = requests.request(
                method, url, headers=headers, params=params, json=json_body, data=data, timeout=REQUEST_TIMEOUT
            )
        except requests.RequestException as e:
            raise TransportError(f"Failed to send request {method} {url}: {e}") from e

        status = resp.status_code
        if 200 <= status < 300:
            return resp

        if status == 401 and not reauthed:
            logger.debug("401 on %s %s, forcing a token refresh", method, url)
            _refresh_token(account)
            reauthed = True
            continue

        if status in RATE_LIMITED:
            wait = _retry_after(resp)
            logger.warning("Spotify API rate limit exceeded, retrying in %d seconds", wait)
            sleep(wait)
            continue

        if status == 403:
            raise ForbiddenError(
                f"User account {account.id or '<unknown id>'}'s OAuth is invalid. "
                f"Please try re-adding this account, then try again. Response {resp.text}",
                status,
                resp.text,
            )
        if 400 <= status < 500:
            raise ClientError(f"Client error: {resp.text} (code {status})", status, resp.text)
        if 500 <= status < 600:
            raise ServerError(f"Server error: {resp.text} (code {status})", status, resp.text)
        raise UnknownStatusError(f"Unknown error: {resp.text} (code {status})", status, resp.text)


def _api_json(
    method: str,
    endpoint: str,
    account: Account,
    params: Optional[dict] = None,
    json_body: Any = None,
    data: Optional[dict] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Any:
    resp = _api_request(method, endpoint, account, params=params, json_body=json_body, data=data, sleep=sleep)
    if not resp.content:
        return None
    try:
        return resp.json()
    except ValueError as e:
        raise InvalidJSONError(f"Failed to parse response: {e}", resp.status_code, resp.text) from e


def _current_user_id(account: Account) -> str:
    if account.id:
        return account.id
    me = _api_json("GET", "me", account)
    try:
        account.id = me["id"]
    except (KeyError, TypeError):
        raise InvalidJSONError("Response from 'me' has no id", body=str(me)) from None
    account.save()
    return account.id
