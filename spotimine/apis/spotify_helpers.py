import logging
import re

from typing import Any, Dict, List, Optional

from .accounts import Account
from .client import _api_json, _api_request
from .constants import PAGE_SIZE
from .errors import ParseError
from .utilities import _chunks

logger = logging.getLogger(__name__)

_ADDED_AT_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})")

DAY = 24 * 60 * 60


def _require(obj: Any, key: str, field: Optional[str] = None) -> Any:
    field = field or key
    if not isinstance(obj, dict):
        raise ParseError(field, f"expected an object, got {type(obj).__name__}")
    if key not in obj or obj[key] is None:
        raise ParseError(field, "missing")
    return obj[key]


def _added_at_to_epoch(added_at: str) -> int:
    # 30-day months and 360-day years: good for ordering entries, not for showing dates.
    m = _ADDED_AT_RE.match(added_at or "")
    if not m:
        raise ParseError("added_at", f"not a timestamp: {added_at!r}")
    year, month, day, hour, minute, second = (int(g) for g in m.groups())
    return (
        (year - 1970) * 360 * DAY
        + (month - 1) * 30 * DAY
        + (day - 1) * DAY
        + hour * 3600
        + minute * 60
        + second
    )


def _fetch_all_items(
    account: Account,
    endpoint: str,
    first_page: Optional[dict] = None,
    params: Optional[dict] = None,
    page_size: int = PAGE_SIZE,
) -> List[Any]:
    """
    Collect every item of an offset-paginated collection.
    `first_page` lets callers reuse a page that came embedded in another object.
    """
    params = dict(params or {})
    if first_page is None:
        first_page = _api_json("GET", endpoint, account, params={**params, "limit": page_size, "offset": 0})

    total = _require(first_page, "total", f"{endpoint}.total")
    if not isinstance(total, int) or isinstance(total, bool):
        raise ParseError(f"{endpoint}.total", f"expected an integer, got {total!r}")
    items = list(_require(first_page, "items", f"{endpoint}.items"))
    offset = len(items)
    while offset < total:
        page = _api_json("GET", endpoint, account, params={**params, "limit": page_size, "offset": offset})
        page_items = _require(page, "items", f"{endpoint}.items")
        if not page_items:
            logger.warning("%s reported %d items but stopped after %d", endpoint, total, offset)
            break
        items.extend(page_items)
        offset += len(page_items)
    return items


def _iter_my_playlists(account: Account) -> List[dict]:
    return _fetch_all_items(account, "me/playlists")


def _create_playlist(
    account: Account,
    user_id: str,
    name: str,
    description: str,
    public: bool = False,
    collaborative: bool = False,
) -> str:
    body: Dict[str, Any] = {"name": name, "description": description, "public": public}
    if collaborative:
        # Spotify only accepts collaborative playlists that are not public.
        body.update({"public": False, "collaborative": True})
    pl = _api_json("POST", f"users/{user_id}/playlists", account, json_body=body)
    return _require(pl, "id", "playlist.id")


def _add_items_in_batches(account: Account, playlist_id: str, uris: List[str]) -> None:
    for chunk in _chunks(uris):
        _api_request("POST", f"playlists/{playlist_id}/tracks", account, json_body={"uris": chunk})


def _remove_liked_in_batches(account: Account, track_ids: List[str]) -> None:
    for chunk in _chunks(track_ids):
        _api_request("DELETE", "me/tracks", account, json_body={"ids": chunk})


def _save_liked_in_batches(account: Account, track_ids: List[str]) -> None:
    for chunk in _chunks(track_ids):
        _api_request("PUT", "me/tracks", account, json_body={"ids": chunk})
