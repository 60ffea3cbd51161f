# app/security/jwt_utils.py
import os
from typing import Optional

import jwt
from fastapi import HTTPException, status

from app.models.session import Session

JWT_SECRET = os.getenv("JWT_SECRET", "change-me-in-production-0123456789")
JWT_ALG = os.getenv("JWT_ALG", "HS256")


def decode_token(token: str) -> dict:
    """
    Decodifica y valida el JWT.
    Lanza 401 si es inválido.
    """
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALG])
    except jwt.PyJWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        )


async def resolve_session(token: Optional[str]) -> Optional[Session]:
    """
    Sesión del usuario dueño del token, o None.
    Token ausente, inválido o sin `sub` dan lo mismo: no hay sesión.
    """
    if not token:
        return None
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALG])
    except jwt.PyJWTError:
        return None
    user_id = payload.get("sub")
    if not user_id:
        return None
    return Session(user_id=str(user_id), email=payload.get("email"))


def get_current_user(authorization_header: str) -> dict:
    """
    Toma el header: Authorization: Bearer <token>
    Lo valida y devuelve el payload.
    Lanza 401 si falta o es inválido.
    """
    if not authorization_header:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing Authorization header",
        )

    if not authorization_header.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid Authorization header format",
        )

    token = authorization_header.removeprefix("Bearer ").strip()
    payload = decode_token(token)

    if "sub" not in payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token without subject",
        )

    return payload
