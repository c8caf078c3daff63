# order_lifecycle/api/deps.py
from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException, status, Request
from fastapi.security import OAuth2PasswordBearer

from order_lifecycle.core.security import decode_token
from order_lifecycle.database import FileBackedDB, db
from order_lifecycle.services.notifications import StatusNotifier, notifier
from order_lifecycle.services.order_status import OrderStatusService

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token", auto_error=False)


def get_db() -> FileBackedDB:
    """
    Dependency that returns the file-backed DB object.
    Usage:
        db = Depends(get_db)
    """
    return db


def get_notifier() -> StatusNotifier:
    return notifier


def get_status_service(
    db: FileBackedDB = Depends(get_db),
    notifier: StatusNotifier = Depends(get_notifier),
) -> OrderStatusService:
    return OrderStatusService(db, notifier=notifier)


def is_admin(user: Dict[str, Any]) -> bool:
    # is_admin is stored as a string in CSV rows
    flag = user.get("is_admin", False)
    if isinstance(flag, str):
        return flag.strip().lower() in ("1", "true", "yes", "y", "t")
    return bool(flag)


def is_owner_or_admin(user: Dict[str, Any], row: Dict[str, Any]) -> bool:
    owner = str(row.get("user_id") or "")
    return is_admin(user) or (owner != "" and owner in (str(user.get("id") or ""), str(user.get("username") or "")))


async def get_current_user(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
    db: FileBackedDB = Depends(get_db),
) -> Dict[str, Any]:
    """
    Resolve the current user from the Authorization header (Bearer) or the
    'access_token' cookie. Raises 401 if no valid token resolves to a stored user.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
        headers={"WWW-Authenticate": "Bearer"},
    )

    subject = decode_token(token) if token else None
    if subject is None:
        cookie_token = request.cookies.get("access_token")
        subject = decode_token(cookie_token) if cookie_token else None
    if not subject:
        raise credentials_exception

    user_row = db.get_record("users", "id", subject) or db.get_record("users", "username", subject)
    if not user_row:
        raise credentials_exception

    user_row.pop("password_hash", None)
    return user_row


def require_admin(current_user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    """
    Dependency to require admin privileges. Raises 403 if user is not admin.
    """
    if not is_admin(current_user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin privileges required")
    return current_user
