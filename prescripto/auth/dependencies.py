"""
FastAPI dependencies for authentication and authorization.

``get_caller`` turns the bearer token into a ``Caller``; ``require`` builds
a dependency that runs the explicit ``authorize`` check for one permission.
"""
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
from typing import Optional

from ..core.permissions import Caller, Permission, authorize
from ..core.security import verify_token
from ..database import get_db
from ..exceptions import AuthenticationException
from .models import User

# Missing tokens are reported through the application error envelope
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)

def get_current_user(token: Optional[str] = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> User:
    """
    Get current authenticated user from JWT token with database verification.

    Args:
        token: JWT token from Authorization header
        db: Database session

    Returns:
        User: Current authenticated user

    Raises:
        AuthenticationException: If the token is missing or invalid, or the user no longer exists
    """
    if not token:
        raise AuthenticationException("Not authorized, login again")

    payload = verify_token(token)
    if not payload:
        raise AuthenticationException("Invalid or expired token")

    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationException("Invalid token payload")

    user = db.query(User).filter(User.id == int(user_id)).first()
    if not user:
        raise AuthenticationException("User not found")

    return user

def get_caller(current_user: User = Depends(get_current_user)) -> Caller:
    """
    Resolve the current user into a caller identity with profile IDs.
    """
    return Caller(
        user_id=current_user.id,
        role=current_user.role,
        patient_id=current_user.patient_profile.id if current_user.patient_profile else None,
        doctor_id=current_user.doctor_profile.id if current_user.doctor_profile else None
    )

def require(permission: Permission):
    """
    Dependency factory to require a permission.

    Args:
        permission: Permission the endpoint needs

    Returns:
        Function that authorizes the caller and returns it
    """
    def permission_checker(caller: Caller = Depends(get_caller)) -> Caller:
        return authorize(caller, permission)
    return permission_checker
