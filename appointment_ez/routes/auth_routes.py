from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel

from appointment_ez.auth import jwt_handler
from appointment_ez.auth.dependencies import require_admin, verify_admin_credentials
from appointment_ez.core import config

router = APIRouter(tags=["auth"])


class LoginRequest(BaseModel):
    username: str
    password: str


@router.post("/login")
def login(data: LoginRequest, response: Response):
    if not verify_admin_credentials(data.username, data.password):
        raise HTTPException(status_code=401, detail="Invalid username or password")

    token = jwt_handler.create_access_token(subject=data.username)
    response.set_cookie(
        key=config.ADMIN_COOKIE_NAME,
        value=token,
        httponly=True,
        samesite="lax",
        secure=config.ADMIN_COOKIE_SECURE,
        max_age=config.JWT_EXPIRES_MINUTES * 60,
    )
    return {"access_token": token, "token_type": "bearer"}


@router.post("/logout")
def logout(response: Response):
    response.delete_cookie(config.ADMIN_COOKIE_NAME)
    return {"success": True}


@router.get("/me")
def me(subject: str = Depends(require_admin)):
    return {"username": subject, "role": jwt_handler.ADMIN_ROLE}
