from __future__ import annotations

from datetime import timedelta
from typing import Any, Protocol


class TokenIssuer(Protocol):
    """Port for minting and verifying signed, short-lived access tokens.

    Implementations are pure: no side effects and no shared mutable state.
    """

    def mint(self, claims: dict[str, Any], ttl: timedelta | None = None) -> str:
        """Sign ``claims`` (must carry ``uid``) into an access token.

        :raises SigningError: When no signing secret is configured.
        """

    def verify(self, token: str) -> dict[str, Any]:
        """Return the decoded claims of a valid access token.

        :raises TokenExpired: Past the token TTL.
        :raises TokenInvalid: Bad signature, malformed token or wrong token type.
        """
