# /carehome/utils/token_util.py
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from flask_jwt_extended import create_access_token, create_refresh_token, decode_token
from flask_jwt_extended.exceptions import JWTExtendedException


class TokenError(Exception):
    """Base class for tokens that fail verification."""


class InvalidToken(TokenError):
    """Bad signature, malformed token or wrong token type."""


class ExpiredToken(TokenError):
    """Signature is valid but the token is past its expiry."""


@dataclass(frozen=True)
class TokenSettings:
    access_ttl: timedelta = timedelta(days=7)
    refresh_ttl: timedelta = timedelta(days=30)

    @classmethod
    def from_config(cls, config):
        return cls(
            access_ttl=config.get('JWT_ACCESS_TOKEN_EXPIRES') or cls.access_ttl,
            refresh_ttl=config.get('JWT_REFRESH_TOKEN_EXPIRES') or cls.refresh_ttl,
        )


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str

    def to_dict(self):
        return {'access_token': self.access_token, 'refresh_token': self.refresh_token}


@dataclass(frozen=True)
class TokenClaims:
    principal_id: str
    issued_at: datetime
    expires_at: Optional[datetime]
    token_type: str
    role: Optional[str] = None
    facility_id: Optional[str] = None


def _from_epoch(value):
    if value is None:
        return None
    # Stored as naive UTC to line up with the model timestamps.
    return datetime.fromtimestamp(int(value), tz=timezone.utc).replace(tzinfo=None)


class TokenCodec:
    """Issues and verifies signed session tokens.

    The signing secret is ``JWT_SECRET_KEY`` as loaded by Flask-JWT-Extended at
    startup, so every call needs an application context.
    """

    def __init__(self, settings: TokenSettings):
        self.settings = settings

    def issue(self, principal_id, role, facility_id) -> TokenPair:
        identity = str(principal_id)
        role_value = getattr(role, 'value', role)
        # NOTE: no PII goes into the payload, only ids and the access level.
        access_token = create_access_token(
            identity=identity,
            additional_claims={'role': role_value, 'facility_id': facility_id},
            expires_delta=self.settings.access_ttl,
        )
        refresh_token = create_refresh_token(
            identity=identity,
            expires_delta=self.settings.refresh_ttl,
        )
        return TokenPair(access_token=access_token, refresh_token=refresh_token)

    def verify(self, token: str, expected_type: str = 'access') -> TokenClaims:
        try:
            claims = decode_token(token)
        except jwt.ExpiredSignatureError as exc:
            raise ExpiredToken('Token has expired') from exc
        except (jwt.InvalidTokenError, JWTExtendedException) as exc:
            raise InvalidToken('Token could not be verified') from exc

        if claims.get('type') != expected_type:
            raise InvalidToken(f"Expected a {expected_type} token")
        subject = claims.get('sub')
        if not subject or 'iat' not in claims:
            raise InvalidToken('Token is missing required claims')

        return TokenClaims(
            principal_id=str(subject),
            issued_at=_from_epoch(claims['iat']),
            expires_at=_from_epoch(claims.get('exp')),
            token_type=claims['type'],
            role=claims.get('role'),
            facility_id=claims.get('facility_id'),
        )
