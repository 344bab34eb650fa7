import time
import string
import secrets
import os
import json
import base64
import hashlib
import tempfile

from typing import Iterator, List, Sequence, TypeVar

from .constants import BATCH_LIMIT
from .errors import ConfigError

T = TypeVar("T")


def _now() -> int:
    return int(time.time())


def _code_challenge_from_verifier(verifier: str) -> str:
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def _random_string(n: int = 64) -> str:
    alphabet = string.ascii_letters + string.digits
    return "".join(secrets.choice(alphabet) for _ in range(n))


def _chunks(items: Sequence[T], size: int = BATCH_LIMIT) -> Iterator[List[T]]:
    if size < 1 or size > BATCH_LIMIT:
        raise ValueError(f"Batch size must be between 1 and {BATCH_LIMIT}, got {size}")
    for i in range(0, len(items), size):
        yield list(items[i : i + size])


def _load_json(path: str) -> dict:
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = f.read()
    except OSError as e:
        raise ConfigError(f"Failed to read {path}: {e}") from e
    except UnicodeDecodeError as e:
        raise ConfigError(f"{path} is not UTF-8 text: {e}") from e
    raw = raw.strip().strip("\x00")
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigError(f"{path} is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path} does not contain a JSON object")
    return data


def _save_json(path: str, data: dict) -> None:
    """Write `data` next to `path` and swap it in, so readers never see a partial file."""
    directory = os.path.dirname(os.path.abspath(path))
    try:
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=".tmp-", suffix=".json", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
    except OSError as e:
        raise ConfigError(f"Failed to write {path}: {e}") from e
