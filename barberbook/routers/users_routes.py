# barberbook/routers/users_routes.py

from fastapi import APIRouter, Depends, HTTPException
from fastapi.security import OAuth2PasswordRequestForm
from sqlmodel import Session, select

from barberbook.db import get_session
from barberbook.models import User
from barberbook.schemas import Token, UserCreate, UserPublic
from barberbook.auth import create_access_token, get_current_user, hash_password, verify_password

router = APIRouter(
    tags=["users"],
)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def find_user(session: Session, email: str):
    return session.exec(
        select(User).where(User.email == normalize_email(email))
    ).first()


@router.post("/auth/login", response_model=Token)
def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    session: Session = Depends(get_session),
):
    # Swagger OAuth2 "password" flow uses "username" field
    user = find_user(session, form_data.username)
    if user is None or not verify_password(form_data.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    token = create_access_token(user.email, user.role)
    return {"access_token": token, "token_type": "bearer"}


@router.get("/me", response_model=UserPublic)
def me(current_user: dict = Depends(get_current_user)):
    return current_user


@router.post("/users", status_code=201, response_model=UserPublic)
def create_user(
    user: UserCreate,
    session: Session = Depends(get_session),
):
    if find_user(session, user.email) is not None:
        raise HTTPException(status_code=409, detail="Email already registered")

    db_user = User(
        email=normalize_email(user.email),
        password_hash=hash_password(user.password),
        role=user.role.value,
    )
    session.add(db_user)
    session.commit()
    session.refresh(db_user)  # fills db_user.id

    return {"id": db_user.id, "email": db_user.email, "role": db_user.role}
