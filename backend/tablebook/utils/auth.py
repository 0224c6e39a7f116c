from datetime import datetime, timedelta, timezone
from typing import Sequence

import jwt
from jwt import InvalidTokenError


def create_access_token(
    *,
    admin_id: int,
    secret: str,
    algorithm: str = "HS256",
    expires_delta: timedelta | None = None,
) -> str:
    issued = datetime.now(timezone.utc)
    payload = {"sub": str(admin_id), "iat": issued, "exp": issued + (expires_delta or timedelta(hours=8))}
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_access_token(token: str, *, secret: str, algorithms: Sequence[str]) -> int:
    """Return the admin id carried in `sub`. Raises ValueError for any unusable token."""
    try:
        claims = jwt.decode(token, secret, algorithms=list(algorithms))
    except InvalidTokenError as exc:
        raise ValueError("invalid token") from exc

    subject = claims.get("sub")
    if subject is None:
        raise ValueError("token missing sub")
    try:
        return int(subject)
    except (TypeError, ValueError) as exc:
        raise ValueError("token sub is not an integer") from exc
