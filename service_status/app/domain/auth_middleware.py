"""
Authentication and authorization for the Status Lab service.
"""

from dataclasses import dataclass
from typing import Optional

from shared.errors import AuthenticationError, AuthorizationError
from shared.logging import get_logger


ADMIN_ROLE = "admin"


@dataclass(frozen=True)
class AuthenticatedIdentity:
    """Principal attached to a single request."""

    id: int
    role: str


class Authenticator:
    """Checks the Authorization header against the one accepted credential.

    There is no credential store: the accepted header value always maps to
    the same configured identity and anything else is rejected.
    """

    def __init__(self, accepted_credential: str, identity: AuthenticatedIdentity):
        self.accepted_credential = accepted_credential
        self.identity = identity
        self.logger = get_logger("status.authenticator")

    def authenticate(self, credential_header: Optional[str]) -> AuthenticatedIdentity:
        """Resolve the identity for a raw Authorization header value."""
        if not credential_header:
            self.logger.info("Missing credentials")
            raise AuthenticationError(
                message="Please provide an authorization token",
                error="Authentication required",
                reason="missing",
            )

        if credential_header != self.accepted_credential:
            self.logger.warning("Invalid credentials presented")
            raise AuthenticationError(
                message="The provided token is invalid or expired",
                error="Invalid token",
                reason="invalid",
            )

        return self.identity


class Authorizer:
    """Role gate for privileged operations."""

    def __init__(self):
        self.logger = get_logger("status.authorizer")

    def authorize(self, identity: AuthenticatedIdentity, required_role: str = ADMIN_ROLE) -> None:
        """Raise AuthorizationError unless ``identity`` holds ``required_role``."""
        if identity.role != required_role:
            self.logger.warning(
                "Authorization failed",
                user_id=identity.id,
                role=identity.role,
                required_role=required_role
            )
            raise AuthorizationError(
                message="Admin privileges required for this operation",
                details={"required_role": required_role},
            )
