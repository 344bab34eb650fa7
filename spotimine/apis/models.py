import logging

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Type, TypeVar

from .accounts import Account
from .client import _api_json
from .constants import BATCH_LIMIT
from .errors import ParseError
from .spotify_helpers import _added_at_to_epoch, _fetch_all_items, _require
from .utilities import _chunks

logger = logging.getLogger(__name__)

C = TypeVar("C", bound="Content")


@dataclass(frozen=True)
class SpotifyURI:
    """`type:id`, optionally with the API's `spotify:` prefix."""

    uri: str

    @classmethod
    def from_parts(cls, type_name: str, id: str) -> "SpotifyURI":
        return cls(f"spotify:{type_name}:{id}")

    def _segments(self) -> List[str]:
        segs = self.uri.split(":")
        if segs and segs[0] == "spotify":
            segs = segs[1:]
        return segs

    @property
    def is_valid(self) -> bool:
        segs = self._segments()
        return len(segs) == 2 and all(segs)

    @property
    def type(self) -> str:
        segs = self._segments()
        return segs[-2] if len(segs) >= 2 else ""

    @property
    def id(self) -> str:
        segs = self._segments()
        return segs[-1] if len(segs) >= 2 else ""

    def __str__(self) -> str:
        return self.uri


class Visibility(Enum):
    PUBLIC = "public"
    PRIVATE = "private"
    COLLABORATIVE = "collaborative"

    @classmethod
    def from_api(cls, collaborative: bool, public: bool) -> "Visibility":
        if collaborative:
            return cls.COLLABORATIVE
        if public:
            return cls.PUBLIC
        return cls.PRIVATE

    @property
    def public(self) -> bool:
        return self is Visibility.PUBLIC

    @property
    def collaborative(self) -> bool:
        return self is Visibility.COLLABORATIVE


def _format_duration(ms: int) -> str:
    secs = ms // 1000
    return f"{secs // 60}:{secs % 60:02d}"


def _uri(value: dict, type_name: str) -> SpotifyURI:
    uri = SpotifyURI(_require(value, "uri", f"{type_name}.uri"))
    if not uri.is_valid:
        raise ParseError(f"{type_name}.uri", f"malformed uri {uri.uri!r}")
    return uri


class Content:
    """
    Shared fetch/parse behaviour for every resource kind.
    Subclasses set TYPE_NAME and implement from_json.
    """

    TYPE_NAME = ""
    BATCH_LIMIT = BATCH_LIMIT
    # Name of a nested paging object that from_id should follow to the end.
    PAGED_CHILDREN: Optional[str] = None

    @classmethod
    def from_json(cls: Type[C], value: Any) -> C:
        raise NotImplementedError

    @classmethod
    def from_json_array(cls: Type[C], values: Any) -> List[C]:
        if not isinstance(values, list):
            raise ParseError(f"{cls.TYPE_NAME}s", "expected an array")
        return [cls.from_json(v) for v in values]

    @classmethod
    def from_id(cls: Type[C], id: str, account: Account) -> C:
        endpoint = f"{cls.TYPE_NAME}s/{id}"
        data = _api_json("GET", endpoint, account)
        key = cls.PAGED_CHILDREN
        if key and isinstance(data, dict) and isinstance(data.get(key), dict):
            data[key]["items"] = _fetch_all_items(account, f"{endpoint}/{key}", first_page=data[key])
        return cls.from_json(data)

    @classmethod
    def from_ids(cls: Type[C], ids: Sequence[str], account: Account) -> List[C]:
        results: List[C] = []
        for chunk in _chunks(ids, cls.BATCH_LIMIT):
            data = _api_json("GET", f"{cls.TYPE_NAME}s", account, params={"ids": ",".join(chunk)})
            results.extend(cls.from_json_array(_require(data, f"{cls.TYPE_NAME}s")))
        return results


@dataclass
class Artist(Content):
    TYPE_NAME = "artist"

    name: str
    uri: SpotifyURI
    followers: int = 0
    genres: List[str] = field(default_factory=list)

    @classmethod
    def from_json(cls, value: Any) -> "Artist":
        return cls(
            name=_require(value, "name", "artist.name"),
            uri=_uri(value, "artist"),
            followers=int((value.get("followers") or {}).get("total") or 0),
            genres=list(value.get("genres") or []),
        )

    def to_json(self) -> dict:
        return {
            "name": self.name,
            "uri": self.uri.uri,
            "followers": {"total": self.followers},
            "genres": list(self.genres),
        }

    def __str__(self) -> str:
        if self.followers:
            return f"{self.name} ({self.followers} followers)"
        return self.name


@dataclass
class Track(Content):
    TYPE_NAME = "track"

    name: str
    artists: List[Artist]
    duration_ms: int
    uri: SpotifyURI
    explicit: bool = False
    # Absent when the track came from an album's track listing.
    album: Optional["Album"] = None

    @classmethod
    def from_json(cls, value: Any) -> "Track":
        duration = _require(value, "duration_ms", "track.duration_ms")
        if not isinstance(duration, int):
            raise ParseError("track.duration_ms", f"expected an integer, got {duration!r}")
        album = value.get("album")
        return cls(
            name=_require(value, "name", "track.name"),
            artists=Artist.from_json_array(_require(value, "artists", "track.artists")),
            duration_ms=duration,
            uri=_uri(value, "track"),
            explicit=bool(value.get("explicit", False)),
            album=Album.from_json(album) if album is not None else None,
        )

    @property
    def id(self) -> str:
        return self.uri.id

    def to_json(self) -> dict:
        out = {
            "name": self.name,
            "artists": [a.to_json() for a in self.artists],
            "duration_ms": self.duration_ms,
            "uri": self.uri.uri,
            "explicit": self.explicit,
        }
        if self.album is not None:
            out["album"] = self.album.to_json()
        return out

    def __str__(self) -> str:
        artists = ", ".join(a.name for a in self.artists)
        return f"{self.name} - {artists} ({_format_duration(self.duration_ms)})"


@dataclass
class Album(Content):
    TYPE_NAME = "album"
    # The several-albums endpoint is capped lower than the others.
    BATCH_LIMIT = 20
    PAGED_CHILDREN = "tracks"

    name: str
    artists: List[Artist]
    uri: SpotifyURI
    tracks: List[Track] = field(default_factory=list)
    release_date: str = ""

    @classmethod
    def from_json(cls, value: Any) -> "Album":
        tracks = (value.get("tracks") or {}).get("items") if isinstance(value, dict) else None
        return cls(
            name=_require(value, "name", "album.name"),
            artists=Artist.from_json_array(_require(value, "artists", "album.artists")),
            uri=_uri(value, "album"),
            tracks=Track.from_json_array(tracks) if tracks else [],
            release_date=value.get("release_date") or "",
        )

    def to_json(self) -> dict:
        out = {
            "name": self.name,
            "artists": [a.to_json() for a in self.artists],
            "uri": self.uri.uri,
            "release_date": self.release_date,
        }
        if self.tracks:
            out["tracks"] = {"items": [t.to_json() for t in self.tracks], "total": len(self.tracks)}
        return out

    def __str__(self) -> str:
        artists = ", ".join(a.name for a in self.artists)
        return f"{self.name} - {artists}"


@dataclass
class PlaylistEntry:
    track: Track
    added_at: Optional[str]
    timestamp: int

    @classmethod
    def from_json(cls, value: Any) -> "PlaylistEntry":
        track = Track.from_json(_require(value, "track", "playlist.tracks.items.track"))
        added_at = value.get("added_at")
        # Very old playlists carry a null added_at; those sort last.
        timestamp = _added_at_to_epoch(added_at) if added_at else 0
        return cls(track=track, added_at=added_at, timestamp=timestamp)

    @classmethod
    def from_json_array(cls, values: Any) -> List["PlaylistEntry"]:
        if not isinstance(values, list):
            raise ParseError("playlist.tracks.items", "expected an array")
        entries = []
        for item in values:
            if not isinstance(item, dict) or item.get("track") is None:
                # Removed or unavailable track.
                continue
            if item.get("is_local"):
                logger.debug("Skipping local file %s", (item.get("track") or {}).get("uri"))
                continue
            entries.append(cls.from_json(item))
        return entries

    def to_json(self) -> dict:
        return {"added_at": self.added_at, "track": self.track.to_json()}


@dataclass
class Playlist(Content):
    TYPE_NAME = "playlist"
    PAGED_CHILDREN = "tracks"

    name: str
    description: str
    visibility: Visibility
    followers: int
    entries: List[PlaylistEntry]
    uri: SpotifyURI
    owner_id: Optional[str] = None

    @classmethod
    def from_json(cls, value: Any) -> "Playlist":
        tracks = _require(value, "tracks", "playlist.tracks")
        return cls(
            name=_require(value, "name", "playlist.name"),
            description=value.get("description") or "",
            visibility=Visibility.from_api(bool(value.get("collaborative")), bool(value.get("public"))),
            followers=int((value.get("followers") or {}).get("total") or 0),
            entries=PlaylistEntry.from_json_array(_require(tracks, "items", "playlist.tracks.items")),
            uri=_uri(value, "playlist"),
            owner_id=(value.get("owner") or {}).get("id"),
        )

    @classmethod
    def from_ids(cls, ids: Sequence[str], account: Account) -> List["Playlist"]:
        # No several-playlists endpoint exists.
        return [cls.from_id(id, account) for id in ids]

    @property
    def tracks(self) -> List[Track]:
        return [e.track for e in self.entries]

    def track_uris(self) -> List[str]:
        return [t.uri.uri for t in self.tracks]

    def track_ids(self) -> List[str]:
        return [t.id for t in self.tracks]

    def sorted_entries(self) -> List[PlaylistEntry]:
        """Most recently added first."""
        return sorted(self.entries, key=lambda e: e.timestamp, reverse=True)

    def to_json(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "public": self.visibility.public,
            "collaborative": self.visibility.collaborative,
            "followers": {"total": self.followers},
            "uri": self.uri.uri,
            "tracks": {"items": [e.to_json() for e in self.entries], "total": len(self.entries)},
        }
        if self.owner_id:
            out["owner"] = {"id": self.owner_id}
        return out

    def __str__(self) -> str:
        return f"{self.name} ({len(self.entries)} tracks, {self.visibility.value})"


class ContentType(Enum):
    TRACK = "track"
    ARTIST = "artist"
    ALBUM = "album"
    PLAYLIST = "playlist"

    @classmethod
    def from_str(cls, word: str) -> "ContentType":
        word = word.strip().lower()
        for member in cls:
            if word in (member.value, member.plural):
                return member
        valid = ", ".join(f"'{m.value}'" for m in cls)
        raise ValueError(f"Invalid content type {word!r}. Valid types are: {valid}")

    @property
    def plural(self) -> str:
        return f"{self.value}s"

    @property
    def model(self) -> Type[Content]:
        return _MODELS[self]


_MODELS: Dict[ContentType, Type[Content]] = {
    ContentType.TRACK: Track,
    ContentType.ARTIST: Artist,
    ContentType.ALBUM: Album,
    ContentType.PLAYLIST: Playlist,
}
