from collections.abc import Callable, Generator, Iterable

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.orm import Session

from app.core.security import decode_token
from app.db.session import SessionLocal
from app.models.user import User, UserRole
from app.schemas.plan import Audience

security = HTTPBearer()

PLANNER_ROLES = (UserRole.admin, UserRole.planner)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        user_id = decode_token(credentials.credentials).get("sub")
    except JWTError as exc:
        raise credentials_exception from exc
    if user_id is None:
        raise credentials_exception

    user = db.get(User, user_id)
    if user is None:
        raise credentials_exception
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User account is inactive")
    return user


def require_roles(*roles: UserRole) -> Callable[[User], User]:
    allowed_roles: Iterable[UserRole] = set(roles)

    def role_checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed_roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return current_user

    return role_checker


def resolve_audience(current_user: User, class_id: int | None, teacher_id: int | None) -> Audience:
    """Map the caller to a plan audience, rejecting plans outside their own scope."""
    if current_user.role in PLANNER_ROLES:
        return "planner"
    if current_user.role == UserRole.student:
        if teacher_id is not None or class_id is None or class_id != current_user.class_id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Students may only view their own class")
        return "student"
    if teacher_id is not None and teacher_id != current_user.teacher_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Teachers may only view their own plan")
    return "teacher"
