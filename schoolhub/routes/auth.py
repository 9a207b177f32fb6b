from datetime import timedelta

import bcrypt
import jwt
from fastapi import APIRouter, HTTPException, Request, status

from schoolhub.models import LoginRequest, RoleEnum
from schoolhub.repository import SchoolRepository, public_user
from schoolhub.utils.jwt import create_jwt, decode_jwt

router = APIRouter()
repo = SchoolRepository()

ADMIN_ONLY = {RoleEnum.admin.value}
STAFF = {RoleEnum.admin.value, RoleEnum.teacher.value}


def get_token_payload(request: Request) -> dict:
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    try:
        return decode_jwt(parts[1])
    except jwt.PyJWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


def require_role(payload: dict, allowed: set[str]) -> None:
    if payload.get("role") not in allowed:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")


def get_current_user(payload: dict) -> dict:
    user = repo.get_user(payload.get("sub", ""))
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return user


def check_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Hash in store has invalid format; treat as a failed login.
        return False


@router.post("/auth/login")
def login(credentials: LoginRequest):
    user = repo.get_user_by_email(credentials.email)
    if not user or not check_password(credentials.password, user.get("passwordHash", "")):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    access_token = create_jwt({"sub": user["id"], "role": user["role"]}, timedelta(days=7))
    return {"accessToken": access_token, "role": user["role"], "userId": user["id"]}


@router.get("/auth/me")
def me(request: Request):
    payload = get_token_payload(request)
    return public_user(get_current_user(payload))
