# barberbook/auth.py

from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlmodel import Session, select

from .config import ACCESS_TOKEN_EXPIRE_MINUTES, JWT_ALGORITHM, SECRET_KEY
from .db import get_session
from .models import Barber, User

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/login")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def create_access_token(email: str, role: str, expires_minutes: int = ACCESS_TOKEN_EXPIRE_MINUTES) -> str:
    claims = {
        "sub": email,
        "role": role,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=expires_minutes),
    }
    return jwt.encode(claims, SECRET_KEY, algorithm=JWT_ALGORITHM)


def credentials_error(detail: str = "Invalid token") -> HTTPException:
    return HTTPException(status_code=401, detail=detail, headers={"WWW-Authenticate": "Bearer"})


def token_subject(token: str) -> str:
    """Email the token was issued for; 401 if it is expired, forged or malformed."""
    try:
        claims = jwt.decode(token, SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError:
        raise credentials_error()
    email: Optional[str] = claims.get("sub")
    if not email:
        raise credentials_error()
    return email


def get_current_user(
    token: str = Depends(oauth2_scheme),
    session: Session = Depends(get_session),
) -> dict:
    email = token_subject(token)

    user = session.exec(select(User).where(User.email == email)).first()
    if user is None:
        raise credentials_error("User not found")

    barber_id = None
    if user.role == "barber":
        # a barber acts on the calendar through their shop assignment
        barber_id = session.exec(select(Barber.id).where(Barber.user_id == user.id)).first()

    return {"id": user.id, "email": user.email, "role": user.role, "barber_id": barber_id}
