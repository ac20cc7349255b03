"""JWT verification for identity provider tokens.

The identity provider signs tokens with a shared HS256 secret. Tokens carry
the user id (sub), the user e-mail and the team the user is acting for.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Optional
from uuid import UUID

import jwt

from credit_ledger.config import Settings, settings as default_settings


@dataclass(frozen=True)
class Identity:
    """Authenticated caller and the tenant it acts for."""

    user_id: str
    email: Optional[str]
    team_id: UUID


class JWTAuth:
    """JWT handler bound to the configured secret and algorithm."""

    def __init__(self, config: Settings | None = None):
        self.config = config or default_settings
        self.access_token_expire_minutes = 60

    def create_access_token(
        self,
        user_id: str,
        email: str,
        team_id: UUID,
        additional_claims: Optional[Dict] = None,
    ) -> str:
        """
        Create a signed access token.

        Used by tests and local tooling; production tokens come from the
        identity provider.

        Returns:
            Encoded JWT token
        """
        now = datetime.utcnow()
        claims = {
            "sub": str(user_id),
            "email": email,
            "team_id": str(team_id),
            "iat": now,
            "exp": now + timedelta(minutes=self.access_token_expire_minutes),
        }
        if self.config.jwt_audience:
            claims["aud"] = self.config.jwt_audience
        if additional_claims:
            claims.update(additional_claims)

        return jwt.encode(claims, self.config.jwt_secret_key, algorithm=self.config.jwt_algorithm)

    def verify_token(self, token: str) -> Dict:
        """
        Verify and decode a JWT token.

        Raises:
            jwt.ExpiredSignatureError: If token is expired
            jwt.InvalidTokenError: If token is invalid
        """
        return jwt.decode(
            token,
            self.config.jwt_secret_key,
            algorithms=[self.config.jwt_algorithm],
            audience=self.config.jwt_audience,
            options={"verify_aud": self.config.jwt_audience is not None},
        )

    def identity_from_token(self, token: str) -> Identity:
        """
        Decode a token into the caller identity.

        Raises:
            jwt.InvalidTokenError: If the token lacks a subject or a valid team_id
        """
        payload = self.verify_token(token)
        if not payload.get("sub"):
            raise jwt.InvalidTokenError("Token has no subject")
        try:
            team_id = UUID(str(payload.get("team_id")))
        except ValueError:
            raise jwt.InvalidTokenError("Token has no valid team_id claim")

        return Identity(user_id=payload["sub"], email=payload.get("email"), team_id=team_id)


# Global JWT auth instance
jwt_auth = JWTAuth()
