"""Photographer accounts: register, login, profile."""
from fastapi import APIRouter, Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import Settings, get_settings
from app.database import get_db
from app.dependencies import get_current_user
from app.errors import Conflict, Unauthorized
from app.models.user import User
from app.schemas.auth import Token, UserCreate, UserLogin, UserResponse, UserUpdate
from app.services.auth import create_access_token, get_password_hash, verify_password

router = APIRouter(prefix="/auth", tags=["auth"])


def _token_for(settings: Settings, user: User) -> Token:
    return Token(
        access_token=create_access_token(settings, user.id, user.email),
        user=UserResponse.model_validate(user),
    )


@router.post("/register", response_model=Token, status_code=201)
def register(data: UserCreate, db: Session = Depends(get_db), settings: Settings = Depends(get_settings)):
    email = data.email.strip().lower()
    if db.query(User.id).filter(User.email == email).first() is not None:
        raise Conflict("An account with this email already exists")
    user = User(
        email=email,
        hashed_password=get_password_hash(data.password),
        **data.model_dump(exclude={"email", "password"}),
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("An account with this email already exists")
    db.refresh(user)
    return _token_for(settings, user)


@router.post("/login", response_model=Token)
def login(data: UserLogin, db: Session = Depends(get_db), settings: Settings = Depends(get_settings)):
    user = db.query(User).filter(User.email == data.email.strip().lower()).first()
    if not user or not verify_password(data.password, user.hashed_password):
        raise Unauthorized("Invalid email or password")
    return _token_for(settings, user)


@router.get("/me", response_model=UserResponse)
def me(current_user: User = Depends(get_current_user)):
    return current_user


@router.put("/me", response_model=UserResponse)
def update_me(data: UserUpdate, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(current_user, field, value)
    db.commit()
    db.refresh(current_user)
    return current_user
