import json
import logging

from typing import Callable, List, Optional

from .accounts import Account
from .client import _api_json, _current_user_id
from .constants import LIKED_SONGS_NAME
from .errors import ConfigError
from .models import Content, ContentType, Playlist, PlaylistEntry, SpotifyURI, Visibility
from .spotify_helpers import (
    _add_items_in_batches,
    _create_playlist,
    _fetch_all_items,
    _iter_my_playlists,
    _remove_liked_in_batches,
    _require,
    _save_liked_in_batches,
)

logger = logging.getLogger(__name__)


def get_playlists_for(account: Account) -> List[Playlist]:
    """
    Every playlist in the account's library, fully hydrated.
    One request per playlist (plus its track pages), so this is slow for big libraries.
    """
    logger.info("Getting playlists. This may take a while, as we need to fetch all the tracks.")
    playlists = []
    for pl in _iter_my_playlists(account):
        playlists.append(Playlist.from_id(_require(pl, "id", "playlist.id"), account))
    return playlists


def get_liked_songs(account: Account) -> Playlist:
    first = _api_json("GET", "me/tracks", account, params={"limit": 50, "offset": 0})
    total = _require(first, "total", "me/tracks.total")
    logger.info("Getting %s liked songs. This may take a while.", total)
    items = _fetch_all_items(account, "me/tracks", first_page=first)
    return Playlist(
        name=LIKED_SONGS_NAME,
        description="your liked songs",
        visibility=Visibility.PRIVATE,
        followers=0,
        entries=PlaylistEntry.from_json_array(items),
        uri=SpotifyURI.from_parts("collection", "tracks"),
        owner_id=account.id,
    )


def copy_playlist(
    playlist: Playlist,
    source: Account,
    new_name: Optional[str] = None,
    dest: Optional[Account] = None,
) -> str:
    """Create a copy of `playlist` on `dest` (default: `source`) and return the new playlist id."""
    dest = dest or source
    name = new_name or playlist.name
    user_id = _current_user_id(dest)

    logger.info("Creating playlist '%s' for %s", name, user_id)
    playlist_id = _create_playlist(
        dest,
        user_id,
        name,
        playlist.description,
        public=playlist.visibility.public,
        collaborative=playlist.visibility.collaborative,
    )

    uris = playlist.track_uris()
    logger.info("Adding %d tracks to '%s'…", len(uris), name)
    _add_items_in_batches(dest, playlist_id, uris)
    logger.info("Copied '%s' to '%s' (%d tracks)", playlist.name, name, len(uris))
    return playlist_id


def copy_to_liked(playlist: Playlist, dest: Account, confirm: Callable[[str], bool]) -> bool:
    """
    Replace all of `dest`'s liked songs with the tracks of `playlist`.
    Nothing is touched unless `confirm` returns True. Returns whether the copy ran.
    """
    prompt = (
        f"This will DELETE all liked songs of the destination account and replace them with "
        f"the {len(playlist.entries)} tracks of '{playlist.name}'. This cannot be undone! Continue?"
    )
    if not confirm(prompt):
        logger.info("Aborted; liked songs left unchanged.")
        return False

    current = get_liked_songs(dest)
    logger.info("Removing %d liked songs…", len(current.entries))
    _remove_liked_in_batches(dest, current.track_ids())

    ids = playlist.track_ids()
    logger.info("Liking %d tracks…", len(ids))
    _save_liked_in_batches(dest, ids)
    return True


def search(query: str, content_type: ContentType, account: Account, limit: int = 20) -> List[Content]:
    data = _api_json("GET", "search", account, params={"q": query, "type": content_type.value, "limit": limit})
    hits = _require(_require(data, content_type.plural), "items", f"{content_type.plural}.items")
    model = content_type.model
    if content_type is ContentType.PLAYLIST:
        # Search only returns simplified playlists; fetch each to get its tracks.
        return [model.from_id(_require(h, "id", "playlist.id"), account) for h in hits if h is not None]
    return model.from_json_array([h for h in hits if h is not None])


def save_playlist_snapshot(playlist: Playlist, path: str) -> None:
    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(playlist.to_json(), f, indent=2)
    except OSError as e:
        raise ConfigError(f"Failed to write snapshot {path}: {e}") from e
    logger.info("Saved '%s' (%d tracks) to %s", playlist.name, len(playlist.entries), path)


def load_playlist_snapshot(path: str) -> Playlist:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise ConfigError(f"Failed to read snapshot {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"Snapshot {path} is not valid JSON: {e}") from e
    return Playlist.from_json(data)
