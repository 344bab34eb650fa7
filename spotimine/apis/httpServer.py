import http.server
import logging
import urllib.parse
import webbrowser

from typing import Callable, Optional

from . import constants
from .constants import AUTH_TIMEOUT
from .errors import BrowserLaunchError, ListenerBindError, RedirectParseError

logger = logging.getLogger(__name__)

SUCCESS_PAGE = (
    b"<!DOCTYPE html><html><head><title>Success</title></head>"
    b"<body><h1>Success</h1><p>You can now close this window.</p></body></html>"
)
FAILURE_PAGE = (
    b"<!DOCTYPE html><html><head><title>Failed</title></head>"
    b"<body><h1>Authorization failed</h1><p>Return to spotimine for details.</p></body></html>"
)


def _parse_callback(path: str, expected_state: str) -> str:
    """Pull the authorization code out of the redirect's request target."""
    qs = urllib.parse.parse_qs(urllib.parse.urlparse(path).query)
    error = qs.get("error", [None])[0]
    if error:
        raise RedirectParseError(f"Authorization error: {error}")
    code = qs.get("code", [None])[0]
    if not code:
        raise RedirectParseError("Redirect did not contain an authorization code.")
    state = qs.get("state", [None])[0]
    if state != expected_state:
        raise RedirectParseError("Redirect state does not match the one we sent; refusing the code.")
    return code


class _OneShotServer(http.server.HTTPServer):
    expected_state = ""
    auth_code: Optional[str] = None
    auth_error: Optional[Exception] = None


class _AuthHandler(http.server.BaseHTTPRequestHandler):
    """
    Minimal handler to capture ?code=... from the redirect and record it on the server.
    """

    protocol_version = "HTTP/1.1"

    def do_GET(self):
        try:
            self.server.auth_code = _parse_callback(self.path, self.server.expected_state)
        except RedirectParseError as e:
            self.server.auth_error = e
            self._reply(400, "Bad Request", FAILURE_PAGE)
        else:
            self._reply(200, "OK", SUCCESS_PAGE)

    def send_error(self, code, message=None, explain=None):
        # Anything but a well-formed GET still consumes the single request we serve.
        detail = f"{code} {message}" if message else str(code)
        self.server.auth_error = RedirectParseError(f"Callback listener got an unexpected request ({detail}).")
        super().send_error(code, message, explain)

    def _reply(self, status: int, reason: str, page: bytes) -> None:
        self.send_response(status, reason)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(page)))
        self.send_header("Connection", "close")
        self.end_headers()
        self.wfile.write(page)
        self.close_connection = True

    def log_message(self, format, *args):
        logger.debug("callback server: " + format, *args)


def _run_temp_server_and_wait_for_code(
    expected_state: str,
    auth_url: str,
    open_browser: Callable[[str], bool] = webbrowser.open,
    redirect_uri: Optional[str] = None,
    timeout: int = AUTH_TIMEOUT,
) -> str:
    redirect_uri = redirect_uri or constants.REDIRECT_URI
    parsed = urllib.parse.urlparse(redirect_uri)
    host = parsed.hostname or "127.0.0.1"
    if parsed.port is None:
        raise ListenerBindError(f"Redirect URI {redirect_uri} must name an explicit loopback port.")

    logger.info("Starting auth callback server on %s:%d", host, parsed.port)
    try:
        server = _OneShotServer((host, parsed.port), _AuthHandler)
    except OSError as e:
        raise ListenerBindError(f"Could not listen on {host}:{parsed.port} (is it already in use?): {e}") from e

    server.timeout = timeout
    server.expected_state = expected_state
    try:
        logger.info("Opening browser for Spotify login…")
        logger.info("If it doesn't open automatically, visit:\n%s\n", auth_url)
        try:
            opened = open_browser(auth_url)
        except webbrowser.Error as e:
            raise BrowserLaunchError(f"Failed to open browser: {e}") from e
        if not opened:
            raise BrowserLaunchError("Failed to open browser. Is a default browser configured?")

        # Blocks on exactly one connection (or the timeout).
        server.handle_request()
    finally:
        server.server_close()

    if server.auth_error is not None:
        raise server.auth_error
    if not server.auth_code:
        raise RedirectParseError(f"Timed out after {timeout}s waiting for Spotify authorization code.")
    logger.info("Got callback, exchanging code for a token")
    return server.auth_code
