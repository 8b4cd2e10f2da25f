"""Identity collaborators that tell the sync layer who the current user is."""

from dataclasses import dataclass
from typing import Optional, Protocol


class IdentityProvider(Protocol):
    """Anything that can report the signed-in user's id."""

    def current_user_id(self) -> Optional[str]:
        """Return the current user id, or None when nobody is signed in."""


@dataclass
class StaticIdentityProvider(IdentityProvider):
    """Identity fixed at construction (per-request API handlers, tests)."""
    user_id: Optional[str] = None

    def current_user_id(self) -> Optional[str]:
        return self.user_id or None
