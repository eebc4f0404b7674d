"""Identity provider protocol and data types."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Protocol


class IdentityError(RuntimeError):
    """Raised when the identity provider rejects or fails a request."""


@dataclass(frozen=True, slots=True)
class OpenIdToken:
    """An OpenID token bound to an identity in the identity pool."""

    identity_id: str
    token: str


class IdentityClient(Protocol):
    """Issues OpenID tokens for identities asserted by this backend."""

    def get_open_id_token_for_developer_identity(
        self,
        *,
        identity_pool_id: str,
        logins: Mapping[str, str],
        token_duration: int,
        principal_tags: Mapping[str, str] | None = None,
    ) -> OpenIdToken:
        """Register (or look up) a developer identity and mint a token for it.

        Args:
            identity_pool_id: Pool the identity belongs to.
            logins: Developer provider name mapped to the login identifier.
            token_duration: Token lifetime in seconds.
            principal_tags: Session tags usable in IAM policy conditions.

        Raises:
            IdentityError: If the provider call fails.
        """
        ...
