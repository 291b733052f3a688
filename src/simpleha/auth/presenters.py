"""Platform presenters for :class:`~simpleha.auth.session.BrowserAuthSession`.

A terminal cannot register a custom URI scheme, so
:class:`BrowserPromptPresenter` opens the authorization page in the system
browser and asks the user to paste the ``homeassistant://`` URL the browser
ends up on. :class:`CallbackPresenter` adapts any callable and is what
headless callers and tests use.
"""

from __future__ import annotations

import logging
import sys
import webbrowser
from typing import Callable, Optional

import typer

from simpleha.exceptions import SessionStartError
from simpleha.output import get_output

logger = logging.getLogger(__name__)


class BrowserPromptPresenter:
    """Open the login page in a browser and read the redirect URL from stdin.

    Args:
        open_browser: Try to launch the system browser. When ``False`` (or no
            browser is available) the URL is only printed.

    Raises:
        SessionStartError: From :meth:`present` when no browser could be
            opened and stdin is not interactive, so there is no way to
            complete the login.
    """

    def __init__(self, open_browser: bool = True) -> None:
        self._open_browser = open_browser

    def present(self, url: str, callback_scheme: str) -> Optional[str]:
        opened = False
        if self._open_browser:
            try:
                opened = webbrowser.open(url)
            except webbrowser.Error as exc:
                logger.debug("Could not launch browser: %s", exc)

        if not sys.stdin.isatty():
            raise SessionStartError(
                "Cannot complete login: stdin is not a TTY to paste the redirect URL into"
            )
        if not opened and self._open_browser:
            logger.warning("No browser could be launched; open the URL manually")

        out = get_output()
        out.stderr_console.print("Log in to Home Assistant at:", soft_wrap=True)
        out.stderr_console.print(url, soft_wrap=True, markup=False, highlight=False)
        out.info(
            f"When the browser is redirected to a '{callback_scheme}://' address, "
            "copy that address and paste it below (leave empty to cancel)."
        )
        try:
            answer = typer.prompt("Redirect URL", default="", show_default=False)
        except typer.Abort:
            return None
        return answer.strip() or None


class CallbackPresenter:
    """Wrap a plain ``(url, callback_scheme) -> redirect | None`` callable."""

    def __init__(self, callback: Callable[[str, str], Optional[str]]) -> None:
        self._callback = callback

    def present(self, url: str, callback_scheme: str) -> Optional[str]:
        return self._callback(url, callback_scheme)
