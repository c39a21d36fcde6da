"""Auth collaborator — current user plus a deferred-action auth prompt.

The sign-in mechanics live elsewhere. This object only knows who is signed in,
whether the auth prompt is showing, and which action was deferred behind it so
the caller can resume exactly that action after a successful sign-in.
"""

import logging
from typing import Optional


class AuthSession:
    """Holds the signed-in user id (or None) for one client."""

    def __init__(self, user_id: Optional[str] = None):
        self._user_id = user_id
        self.prompt_visible = False
        self.pending_action: Optional[str] = None

    @property
    def current_user_id(self) -> Optional[str]:
        return self._user_id

    @property
    def is_authenticated(self) -> bool:
        return self._user_id is not None

    def request_auth(self, pending_action: str) -> None:
        """Show the auth prompt and remember what to resume afterwards."""
        logging.info(f"Auth required; deferring action '{pending_action}'")
        self.prompt_visible = True
        self.pending_action = pending_action

    def complete_auth(self, user_id: str) -> Optional[str]:
        """Record a successful sign-in; returns the deferred action, if any."""
        self._user_id = user_id
        self.prompt_visible = False
        action, self.pending_action = self.pending_action, None
        return action

    def cancel_auth(self) -> None:
        self.prompt_visible = False
        self.pending_action = None

    def sign_out(self) -> None:
        self._user_id = None
        self.cancel_auth()
