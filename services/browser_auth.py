"""
Browser Authorizer Module

Default interactive step of the OAuth flow for a terminal session: the
authorization URL is opened in the system browser and the user pastes the
URL the browser was redirected to.
"""

import webbrowser
from typing import Callable, Optional

from utils.exceptions import AuthorizationFailedError, UserCancelledError
from utils.logger import get_logger

logger = get_logger(__name__)


class BrowserAuthorizer:
    """InteractiveAuthorizer backed by ``webbrowser`` and a terminal prompt."""

    def __init__(self, open_url: Optional[Callable[[str], bool]] = None,
                 prompt: Optional[Callable[[str], str]] = None,
                 output: Callable[[str], None] = print):
        self.open_url = open_url or webbrowser.open
        self.prompt = prompt or input
        self.output = output

    def authorize(self, url: str, callback_scheme: str) -> str:
        """
        Open ``url`` and read back the redirect URL.

        Args:
            url: Authorization URL.
            callback_scheme: Redirect URI prefix the pasted URL must start with.

        Returns:
            str: The pasted callback URL.

        Raises:
            UserCancelledError: If the user enters nothing or interrupts the prompt.
            AuthorizationFailedError: If the pasted URL is not a callback URL.
        """
        opened = False
        try:
            opened = self.open_url(url)
        except webbrowser.Error as e:
            logger.warning(f"Could not open a browser: {e}")

        if not opened:
            self.output("Open this URL in your browser to authorize:")
        self.output(url)

        try:
            answer = self.prompt("Paste the URL you were redirected to (empty to cancel): ")
        except (EOFError, KeyboardInterrupt) as e:
            raise UserCancelledError() from e

        answer = (answer or "").strip()
        if not answer:
            raise UserCancelledError()
        if callback_scheme and not answer.startswith(callback_scheme):
            raise AuthorizationFailedError("the pasted URL does not match the redirect URI")
        return answer
