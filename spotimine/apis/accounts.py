import logging
import os

from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from .constants import LEGACY_ABSOLUTE_THRESHOLD
from .errors import ConfigError, ParseError
from .utilities import _load_json, _now, _save_json

logger = logging.getLogger(__name__)


@dataclass
class Account:
    access_token: str
    expires_at: int
    refresh_token: str
    scope: str = ""
    id: Optional[str] = None
    # Installed by the owning CredentialStore; called after an in-place token refresh.
    persist: Optional[Callable[[], None]] = field(default=None, repr=False, compare=False)

    @classmethod
    def from_token_response(cls, data: dict, now: Optional[int] = None) -> "Account":
        """Build an account from a /api/token response (relative `expires_in`)."""
        now = _now() if now is None else now
        try:
            return cls(
                access_token=data["access_token"],
                expires_at=now + int(data["expires_in"]),
                refresh_token=data.get("refresh_token", ""),
                scope=data.get("scope", ""),
            )
        except KeyError as e:
            raise ParseError(e.args[0], "missing from token response") from e
        except (TypeError, ValueError) as e:
            raise ParseError("expires_in", str(e)) from e

    @classmethod
    def from_dict(cls, data: dict, now: Optional[int] = None) -> "Account":
        if "expires_at" in data:
            expires_at = int(data["expires_at"])
        elif "expires_in" in data:
            # Older config files stored either form under `expires_in`.
            expires_at = int(data["expires_in"])
            if expires_at <= LEGACY_ABSOLUTE_THRESHOLD:
                expires_at += _now() if now is None else now
        else:
            raise ParseError("expires_at", "missing from stored account")
        try:
            return cls(
                access_token=data["access_token"],
                expires_at=expires_at,
                refresh_token=data.get("refresh_token", ""),
                scope=data.get("scope", ""),
                id=data.get("id"),
            )
        except KeyError as e:
            raise ParseError(e.args[0], "missing from stored account") from e

    def to_dict(self) -> dict:
        out = {
            "access_token": self.access_token,
            "expires_at": self.expires_at,
            "refresh_token": self.refresh_token,
            "scope": self.scope,
        }
        if self.id:
            out["id"] = self.id
        return out

    def save(self) -> None:
        if self.persist is not None:
            self.persist()


class CredentialStore:
    """Alias -> Account mapping backed by a single JSON file."""

    def __init__(self, path: str, accounts: Optional[Dict[str, Account]] = None):
        self.path = path
        self.accounts: Dict[str, Account] = {}
        for alias, acc in (accounts or {}).items():
            self._attach(alias, acc)

    @classmethod
    def load(cls, path: str) -> "CredentialStore":
        if not os.path.exists(path):
            store = cls(path)
            store.save()
            logger.info("Created config at %s", path)
            return store

        raw = _load_json(path)
        stored = raw.get("accounts") or {}
        if not isinstance(stored, dict):
            raise ConfigError(f"'accounts' in {path} is not an object")

        accounts: Dict[str, Account] = {}
        legacy = []
        for alias, data in stored.items():
            if not isinstance(data, dict):
                raise ConfigError(f"Account '{alias}' in {path} is not an object")
            try:
                accounts[alias] = Account.from_dict(data)
            except (ParseError, TypeError, ValueError) as e:
                raise ConfigError(f"Account '{alias}' in {path} is corrupt: {e}") from e
            if "expires_at" not in data:
                legacy.append(alias)
        logger.debug("Loaded config (%d accounts)", len(accounts))

        store = cls(path, accounts)
        if legacy:
            # Relative `expires_in` is only meaningful once; pin it to disk now.
            logger.info("Migrating token expiry of %s to expires_at", ", ".join(legacy))
            store.save()
        return store

    def to_dict(self) -> dict:
        return {"accounts": {alias: acc.to_dict() for alias, acc in self.accounts.items()}}

    def save(self) -> None:
        _save_json(self.path, self.to_dict())

    def _attach(self, alias: str, acc: Account) -> None:
        acc.persist = self.save
        self.accounts[alias] = acc

    def add(self, alias: str, acc: Account) -> None:
        if not alias:
            raise ValueError("Account alias must not be empty")
        if alias in self:
            logger.warning("Replacing existing account '%s'", alias)
        self._attach(alias, acc)
        self.save()

    def remove(self, alias: str) -> Account:
        try:
            acc = self.accounts.pop(alias)
        except KeyError:
            raise ConfigError(f"Account not found: {alias}") from None
        acc.persist = None
        self.save()
        return acc

    def clear(self) -> None:
        for acc in self.accounts.values():
            acc.persist = None
        self.accounts.clear()
        self.save()

    def get(self, alias: str) -> Account:
        try:
            return self.accounts[alias]
        except KeyError:
            raise ConfigError(f"Account not found: {alias}. Try adding one with 'adduser'") from None

    def any_account(self) -> Optional[Account]:
        return next(iter(self.accounts.values()), None)

    def items(self) -> Iterator[Tuple[str, Account]]:
        return iter(list(self.accounts.items()))

    def aliases(self) -> List[str]:
        return list(self.accounts)

    def __contains__(self, alias: str) -> bool:
        return alias in self.accounts

    def __len__(self) -> int:
        return len(self.accounts)
