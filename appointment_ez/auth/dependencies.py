import secrets

import jwt
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from appointment_ez.auth import jwt_handler
from appointment_ez.core import config

security = HTTPBearer(auto_error=False)


def verify_admin_credentials(username: str, password: str) -> bool:
    username_ok = secrets.compare_digest(username.encode(), config.ADMIN_USERNAME.encode())
    password_ok = secrets.compare_digest(password.encode(), config.ADMIN_PASSWORD.encode())
    return username_ok and password_ok


def require_admin(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> str:
    token = credentials.credentials if credentials else request.cookies.get(config.ADMIN_COOKIE_NAME)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    try:
        payload = jwt_handler.decode_access_token(token)
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc

    if payload.get("role") != jwt_handler.ADMIN_ROLE or not payload.get("sub"):
        raise HTTPException(status_code=401, detail="Invalid token subject")
    return payload["sub"]
