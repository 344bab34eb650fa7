# spotimine/apis/cli.py
import argparse
import logging
import sys

from typing import Callable, Dict, List, NamedTuple, Optional, Sequence, TypeVar

from colorama import Fore, Style

from .accounts import CredentialStore
from .api import (
    copy_playlist,
    copy_to_liked,
    get_liked_songs,
    get_playlists_for,
    load_playlist_snapshot,
    save_playlist_snapshot,
    search,
)
from .client import _api_json
from .constants import _get_config_path, _get_log_level
from .errors import ConfigError, SpotimineError
from .log import setup_logging
from .models import ContentType, Playlist
from .oauth import _authorize_with_pkce, _ensure_token

logger = logging.getLogger(__name__)

T = TypeVar("T")

EXIT_OK = 0
EXIT_INTERRUPTED = 1
EXIT_FATAL = 2

InputFn = Callable[[str], str]


class _Exit(Exception):
    def __init__(self, code: int):
        super().__init__(code)
        self.code = code


def _confirm(prompt: str, default: bool = False, input_fn: InputFn = input) -> bool:
    ans = input_fn(f"{prompt} [{'Y/n' if default else 'y/N'}]: ").strip().lower()
    if not ans:
        return default
    if ans in ("y", "yes"):
        return True
    if ans in ("n", "no"):
        return False
    return default


def _choose(prompt: str, options: Sequence[T], default: int = 0, input_fn: InputFn = input) -> T:
    if not options:
        raise ValueError("Nothing to choose from.")
    for i, opt in enumerate(options):
        print(f"[{i}]: {opt}")
    ans = input_fn(f"{prompt} (default: {default}): ").strip()
    if not ans:
        return options[default]
    try:
        index = int(ans)
    except ValueError:
        raise ValueError(f"Invalid input: {ans!r}") from None
    if not 0 <= index < len(options):
        raise ValueError(f"Choice out of range: {index}")
    return options[index]


def _all_playlists(store: CredentialStore, alias: str) -> List[Playlist]:
    account = store.get(alias)
    playlists = get_playlists_for(account)
    playlists.append(get_liked_songs(account))
    return playlists


def _cmd_adduser(store: CredentialStore, args: List[str], input_fn: InputFn) -> None:
    account = _authorize_with_pkce()
    me = _api_json("GET", "me", account) or {}
    account.id = me.get("id")
    alias = args[0] if args else (me.get("display_name") or me.get("id"))
    if not alias:
        raise SpotimineError("Failed to get account info from Spotify API; pass an alias explicitly.")
    store.add(alias, account)
    logger.info("Added account '%s'", alias)


def _cmd_rmuser(store: CredentialStore, args: List[str], input_fn: InputFn) -> None:
    store.remove(args[0])
    logger.info("Removed account '%s'", args[0])


def _cmd_liked(store: CredentialStore, args: List[str], input_fn: InputFn) -> None:
    liked = get_liked_songs(store.get(args[0]))
    for i, entry in enumerate(liked.sorted_entries(), start=1):
        print(f"{i:>5}. {entry.track}")


def _cmd_copy(store: CredentialStore, args: List[str], input_fn: InputFn) -> None:
    source = store.get(args[0])
    dest = store.get(args[1])
    target = args[2] if len(args) > 2 else None
    playlist = _choose("Choose a playlist to copy", _all_playlists(store, args[0]), input_fn=input_fn)
    if target == "liked":
        copy_to_liked(playlist, dest, confirm=lambda prompt: _confirm(prompt, input_fn=input_fn))
    else:
        copy_playlist(playlist, source, target, dest)


def _cmd_search(store: CredentialStore, args: List[str], input_fn: InputFn) -> None:
    content_type = ContentType.from_str(args[0])
    query = " ".join(args[1:])
    account = store.any_account()
    if account is None:
        raise ConfigError(
            "No accounts found. At least one is required to use the API. Try adding one with 'adduser'"
        )
    logger.info("Searching for %s. This may take a few moments...", content_type.plural)
    for result in search(query, content_type, account):
        print(result)


def _cmd_users(store: CredentialStore, args: List[str], input_fn: InputFn) -> None:
    print(f"Found {len(store)} users:")
    for alias, account in store.items():
        token = _ensure_token(account)
        print(f"{alias}: {token[:20]}...")


def _cmd_delusers(store: CredentialStore, args: List[str], input_fn: InputFn) -> None:
    if _confirm("Are you sure you want to delete ALL accounts? This cannot be undone!", input_fn=input_fn):
        store.clear()
        logger.info("deleted all users.")


def _cmd_config(store: CredentialStore, args: List[str], input_fn: InputFn) -> None:
    print(f"config file is {store.path}")


def _cmd_backup(store: CredentialStore, args: List[str], input_fn: InputFn) -> None:
    playlist = _choose("Choose a playlist to back up", _all_playlists(store, args[0]), input_fn=input_fn)
    save_playlist_snapshot(playlist, args[1])


def _cmd_restore(store: CredentialStore, args: List[str], input_fn: InputFn) -> None:
    playlist = load_playlist_snapshot(args[0])
    dest = store.get(args[1])
    copy_playlist(playlist, dest, args[2] if len(args) > 2 else None)


def _cmd_help(store: CredentialStore, args: List[str], input_fn: InputFn) -> None:
    for command in COMMANDS.values():
        print(f"  {command.usage}")


def _cmd_exit(store: CredentialStore, args: List[str], input_fn: InputFn) -> None:
    raise _Exit(EXIT_OK)


class _Command(NamedTuple):
    handler: Callable[[CredentialStore, List[str], InputFn], None]
    min_args: int
    usage: str


COMMANDS: Dict[str, _Command] = {
    "adduser": _Command(_cmd_adduser, 0, "adduser [<optional> alias]"),
    "rmuser": _Command(_cmd_rmuser, 1, "rmuser [account_name]"),
    "liked": _Command(_cmd_liked, 1, "liked [account_name]"),
    "copy": _Command(
        _cmd_copy, 2, "copy [source account] [dst account] [<optional> target_name, use liked to OVERWRITE liked songs]"
    ),
    "search": _Command(_cmd_search, 2, "search [content_type] [query...]"),
    "users": _Command(_cmd_users, 0, "users"),
    "delusers": _Command(_cmd_delusers, 0, "delusers"),
    "config": _Command(_cmd_config, 0, "config"),
    "backup": _Command(_cmd_backup, 2, "backup [account_name] [file]"),
    "restore": _Command(_cmd_restore, 2, "restore [file] [dst account] [<optional> target_name]"),
    "help": _Command(_cmd_help, 0, "help"),
    "exit": _Command(_cmd_exit, 0, "exit"),
}


def dispatch(line: str, store: CredentialStore, input_fn: InputFn = input) -> None:
    args = line.split()
    if not args:
        return
    name, rest = args[0], args[1:]
    command = COMMANDS.get(name)
    if command is None:
        raise ValueError(f"Unknown command: {name}. Type 'help' for a list of commands.")
    if len(rest) < command.min_args:
        raise ValueError(
            f"Not enough arguments. Expected {command.min_args}, got {len(rest)}.\nUsage: {command.usage}"
        )
    command.handler(store, rest, input_fn)


def interactive_loop(store: CredentialStore, input_fn: Optional[InputFn] = None) -> int:
    """Read commands until `exit` (returns 0) or end of input / Ctrl-C (returns 1)."""
    input_fn = input_fn or input
    prompt = f"{Fore.GREEN}spotimine> {Style.RESET_ALL}"
    while True:
        try:
            line = input_fn(prompt)
        except (EOFError, KeyboardInterrupt):
            print()
            return EXIT_INTERRUPTED

        try:
            dispatch(line.strip(), store, input_fn=input_fn)
        except _Exit as e:
            print(f"{Fore.RED}Exiting...{Style.RESET_ALL}")
            return e.code
        except KeyboardInterrupt:
            print()
            logger.warning("Command interrupted.")
        except (SpotimineError, ValueError) as e:
            logger.error("%s", e)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="spotimine",
        description="Copy, back up and search Spotify playlists across several accounts.",
    )
    parser.add_argument("--config", metavar="PATH", default=None, help="Config file (default: per-OS config dir).")
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING or ERROR (default: INFO).")
    args = parser.parse_args(argv)

    setup_logging(args.log_level or _get_log_level())
    path = args.config or _get_config_path()
    try:
        store = CredentialStore.load(path)
    except ConfigError as e:
        logger.critical("Failed to initialize: %s", e)
        return EXIT_FATAL

    print(f"{Fore.GREEN}{Style.BRIGHT}spotimine{Style.RESET_ALL}; running on {Style.BRIGHT}{sys.platform}{Style.RESET_ALL}")
    print("Type 'help' for a list of commands.")

    code = interactive_loop(store)
    try:
        store.save()
    except ConfigError as e:
        logger.critical("Failed to save config while exiting, users may be corrupt! %s", e)
        return EXIT_FATAL
    return code


if __name__ == "__main__":
    raise SystemExit(main())
