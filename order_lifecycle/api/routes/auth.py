# order_lifecycle/api/routes/auth.py
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm

from order_lifecycle.api.deps import get_db
from order_lifecycle.api.schemas.user import TokenResponse, UserCreate, UserOut
from order_lifecycle.core.security import create_access_token, hash_password, verify_password
from order_lifecycle.core.timeutil import format_datetime, utcnow
from order_lifecycle.database import FileBackedDB

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/register", response_model=UserOut, status_code=201)
def register(user: UserCreate, db: FileBackedDB = Depends(get_db)):
    """
    Create a customer account. Admin accounts are provisioned directly in the users table.
    """
    if db.get_record("users", "username", user.username):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Username already registered")
    row = db.create_record(
        "users",
        {
            "username": user.username,
            "email": user.email,
            "password_hash": hash_password(user.password),
            "full_name": user.full_name or "",
            "is_admin": False,
            "created_at": format_datetime(utcnow()),
        },
        id_field="id",
    )
    return {
        "id": row.get("id"),
        "username": row.get("username"),
        "email": row.get("email"),
        "full_name": row.get("full_name") or None,
        "is_admin": False,
    }


@router.post("/token", response_model=TokenResponse)
def token(form_data: OAuth2PasswordRequestForm = Depends(), db: FileBackedDB = Depends(get_db)):
    """
    Token endpoint used by OAuth2PasswordRequestForm clients. Returns a signed JWT.
    """
    user = db.get_record("users", "username", form_data.username) or db.get_record("users", "email", form_data.username)
    stored_hash = (user or {}).get("password_hash")
    try:
        valid = bool(stored_hash) and verify_password(form_data.password, stored_hash)
    except ValueError:
        # unrecognised hash format
        valid = False
    if not valid:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    subject = str(user.get("id") or user.get("username"))
    return {"access_token": create_access_token(subject), "token_type": "bearer"}
