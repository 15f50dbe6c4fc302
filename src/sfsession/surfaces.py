"""Login surfaces: where the user completes the identity provider login.

A surface only has to open the authorize URL and report where it currently
is. read_location() returns None while there is nothing readable yet (still
on the provider's domain, no navigation seen), so the watcher never has to
treat an access failure as "not yet".

Three kinds:
- NavigationSurface: embedded webviews push each navigation URL via notify().
- PasteSurface: prints the URL, the user pastes the redirect back (SSH, Docker, headless).
- LocalCallbackSurface: system browser + a one-shot local server on the callback URL.
"""
from __future__ import annotations

import queue
import threading
import webbrowser
from typing import Callable, Optional
from urllib.parse import urlparse
from wsgiref.simple_server import WSGIRequestHandler, make_server


class LoginSurface:
    def open(self, url: str) -> None:
        raise NotImplementedError

    def read_location(self) -> Optional[str]:
        raise NotImplementedError

    @property
    def closed(self) -> bool:
        raise NotImplementedError

    def close(self) -> None:
        raise NotImplementedError


class NavigationSurface(LoginSurface):
    """Surface fed by a host webview's navigation events (loadstop and the like)."""

    def __init__(self, opener: Optional[Callable[[str], None]] = None) -> None:
        self._opener = opener
        self._events: "queue.Queue[str]" = queue.Queue()
        self._closed = False
        self.opened_url: Optional[str] = None

    def open(self, url: str) -> None:
        self.opened_url = url
        if self._opener:
            self._opener(url)

    def notify(self, url: str) -> None:
        """Host hook: the webview finished loading url."""
        if not self._closed:
            self._events.put(url)

    def read_location(self) -> Optional[str]:
        try:
            return self._events.get_nowait()
        except queue.Empty:
            return None

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        self._closed = True


class PasteSurface(LoginSurface):
    """Manual flow: print the authorize URL and read the redirect URL from the terminal."""

    def __init__(
        self,
        prompt: Callable[[str], str] = input,
        out: Callable[[str], None] = print,
    ) -> None:
        self._prompt = prompt
        self._out = out
        self._closed = False

    def open(self, url: str) -> None:
        self._out("Visit this URL in any browser (phone, another PC, etc.):")
        self._out("")
        self._out(url)
        self._out("")
        self._out(
            "After logging in you'll be redirected to the callback URL. Copy the *entire* URL "
            "from the address bar (it may show an error page; that's OK) and paste it below."
        )

    def read_location(self) -> Optional[str]:
        if self._closed:
            return None
        response = self._prompt("\nPaste the redirect URL here: ").strip()
        if not response:
            # Empty paste: user gave up
            self._closed = True
            return None
        return response

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        self._closed = True


FRAGMENT_PATH = "/__sfsession_fragment"

# The fragment never reaches a server, so the callback page hands it back as a query string.
_RELAY_PAGE = """<!doctype html>
<html><body>
<p>Completing login...</p>
<script>
var h = window.location.hash.substring(1) || window.location.search.substring(1);
window.location.replace("%s?" + h);
</script>
</body></html>
"""

_DONE_PAGE = "Login complete. You may close this window."


class _QuietHandler(WSGIRequestHandler):
    def log_message(self, *args):
        pass


class LocalCallbackSurface(LoginSurface):
    """
    Opens the system browser and serves the (http://localhost...) callback URL.

    The location becomes readable once the browser has relayed the fragment.
    """

    def __init__(
        self,
        callback_url: str,
        *,
        open_browser: bool = True,
        out: Callable[[str], None] = print,
    ) -> None:
        parsed = urlparse(callback_url)
        if parsed.scheme != "http" or parsed.hostname not in ("localhost", "127.0.0.1"):
            raise ValueError(f"LocalCallbackSurface needs an http://localhost callback URL, got {callback_url!r}")
        self.callback_url = callback_url.split("#", 1)[0]
        self._host = parsed.hostname
        self._port = parsed.port or 80
        self._path = parsed.path or "/"
        self._open_browser = open_browser
        self._out = out
        self._location: Optional[str] = None
        self._shut = False
        self._server = None
        self._thread: Optional[threading.Thread] = None

    def _app(self, environ, start_response):
        path = environ.get("PATH_INFO") or "/"
        if path == FRAGMENT_PATH:
            self._location = self.callback_url + "#" + environ.get("QUERY_STRING", "")
            start_response("200 OK", [("Content-Type", "text/plain; charset=utf-8")])
            return [_DONE_PAGE.encode("utf-8")]
        if path == self._path:
            start_response("200 OK", [("Content-Type", "text/html; charset=utf-8")])
            return [(_RELAY_PAGE % FRAGMENT_PATH).encode("utf-8")]
        start_response("404 Not Found", [("Content-Type", "text/plain; charset=utf-8")])
        return [b"Not found"]

    def open(self, url: str) -> None:
        self._server = make_server(self._host, self._port, self._app, handler_class=_QuietHandler)
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()
        self._out(f"Please visit this URL to log in: {url}")
        if self._open_browser:
            webbrowser.open(url, new=1, autoraise=True)

    def read_location(self) -> Optional[str]:
        return None if self._shut else self._location

    @property
    def closed(self) -> bool:
        return self._server is None

    def close(self) -> None:
        self._shut = True
        server, self._server = self._server, None
        if server is not None:
            server.shutdown()
            server.server_close()
