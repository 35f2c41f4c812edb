import os
from dataclasses import dataclass
from typing import Any, Callable

from fastapi import Depends, Header, HTTPException, status
from jose import JWTError, jwt

DEFAULT_SECRET_KEY = "a_very_secret_key_that_should_be_in_an_env_var"
DEFAULT_ALGORITHM = "HS256"
DEFAULT_ROLE = "Startup"


@dataclass(frozen=True)
class AuthenticatedUser:
    user_id: str
    role: str = DEFAULT_ROLE
    service_code: str | None = None
    email: str | None = None


def _claim_str(payload: dict[str, Any], *names: str) -> str | None:
    for name in names:
        value = payload.get(name)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def build_jwt_auth_dependencies(
    secret_key_env_var: str = "AUTH_SECRET_KEY",
    algorithm: str = DEFAULT_ALGORITHM,
    secret_key: str | None = None,
) -> tuple[Callable[..., str], Callable[..., AuthenticatedUser]]:
    """Create FastAPI dependencies for bearer token extraction and JWT claim decoding.

    The second dependency returns the authenticated user with the ``role`` and
    ``service_code`` claims (CA/CS codes are also read from ``ca_code`` and
    ``cs_code``).
    """

    resolved_secret = secret_key or os.getenv(secret_key_env_var, DEFAULT_SECRET_KEY)

    def get_bearer_token(authorization: str | None = Header(default=None)) -> str:
        if not authorization or not authorization.startswith("Bearer "):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Missing or invalid authorization header",
            )
        return authorization.split(" ", 1)[1]

    def get_current_user(token: str = Depends(get_bearer_token)) -> AuthenticatedUser:
        try:
            payload = jwt.decode(token, resolved_secret, algorithms=[algorithm])
        except JWTError as exc:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid authentication token",
            ) from exc

        user_id = payload.get("sub")
        if not user_id:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid authentication token",
            )
        return AuthenticatedUser(
            user_id=str(user_id),
            role=_claim_str(payload, "role") or DEFAULT_ROLE,
            service_code=_claim_str(payload, "service_code", "ca_code", "cs_code"),
            email=_claim_str(payload, "email"),
        )

    return get_bearer_token, get_current_user
