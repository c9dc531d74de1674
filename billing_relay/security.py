import base64
import binascii
import logging

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import PyJWKClient

logger = logging.getLogger("relay.auth")

bearer_scheme = HTTPBearer(auto_error=False)

SESSION_COOKIE = "__session"


def frontend_api_from_publishable_key(publishable_key: str) -> str:
    """pk_test_<base64("clerk.example.com$")> -> "clerk.example.com"."""
    prefix, _, encoded = publishable_key.partition("_")
    _, _, encoded = encoded.partition("_")
    if prefix != "pk" or not encoded:
        raise ValueError("Malformed Clerk publishable key")
    try:
        decoded = base64.b64decode(encoded + "=" * (-len(encoded) % 4)).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise ValueError("Malformed Clerk publishable key") from e
    if not decoded.endswith("$"):
        raise ValueError("Malformed Clerk publishable key")
    return decoded[:-1]


class ClerkTokenVerifier:
    """
    Verifies Clerk session tokens (RS256 JWTs) and returns the user id.

    Uses the PEM key when given, otherwise the JWKS published by the Clerk
    Frontend API. Any failure yields None, never an exception.
    """

    def __init__(
        self,
        jwt_key: str | None = None,
        jwks_url: str | None = None,
        authorized_parties: list[str] | None = None,
        leeway: int = 5,
    ):
        if not jwt_key and not jwks_url:
            raise ValueError("Either a PEM key or a JWKS URL is required")
        self._jwt_key = jwt_key.replace("\\n", "\n") if jwt_key else None
        self._jwks_client = PyJWKClient(jwks_url) if jwks_url and not jwt_key else None
        self._authorized_parties = authorized_parties or []
        self._leeway = leeway

    @classmethod
    def from_settings(cls, settings) -> "ClerkTokenVerifier":
        jwks_url = None
        if not settings.clerk_jwt_key:
            frontend_api = frontend_api_from_publishable_key(settings.clerk_publishable_key)
            jwks_url = f"https://{frontend_api}/.well-known/jwks.json"
        return cls(
            jwt_key=settings.clerk_jwt_key or None,
            jwks_url=jwks_url,
            authorized_parties=settings.authorized_parties,
        )

    def _signing_key(self, token: str):
        if self._jwt_key:
            return self._jwt_key
        return self._jwks_client.get_signing_key_from_jwt(token).key

    def verify(self, token: str) -> str | None:
        try:
            claims = jwt.decode(
                token,
                self._signing_key(token),
                algorithms=["RS256"],
                leeway=self._leeway,
                options={"require": ["exp", "sub"], "verify_aud": False},
            )
        except jwt.PyJWTError as e:
            logger.info("Rejected session token: %s", e)
            return None

        azp = claims.get("azp")
        if azp and self._authorized_parties and azp.rstrip("/") not in self._authorized_parties:
            logger.info("Rejected session token: unauthorized party %s", azp)
            return None
        return claims["sub"]


def get_token_verifier(request: Request) -> ClerkTokenVerifier:
    return request.app.state.token_verifier


def get_current_user_id(
    request: Request,
    creds: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    verifier: ClerkTokenVerifier = Depends(get_token_verifier),
) -> str | None:
    # JWKS fetches block: must stay a sync dependency
    token = creds.credentials if creds else request.cookies.get(SESSION_COOKIE)
    if not token:
        return None
    return verifier.verify(token)


def require_user_id(user_id: str | None = Depends(get_current_user_id)) -> str:
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized: No userId found")
    return user_id
