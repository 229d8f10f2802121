import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from backend.auth import jwt_handler
from backend.core.exceptions import NotFoundException
from backend.database import get_db
from backend.models.profile import CoachProfile, MemberProfile
from backend.models.user import User
from backend.services import identity

security = HTTPBearer()

ROLE_COACH = "coach"
ROLE_MEMBER = "member"


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    token = credentials.credentials
    try:
        payload = jwt_handler.decode_access_token(token)
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc

    email = payload.get("sub")
    if not email:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token subject")

    user = db.query(User).filter(User.email == email.strip().lower()).first()
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return user


def require_role(role: str):
    def dependency(current_user: User = Depends(get_current_user)) -> User:
        if (current_user.role or "").lower() != role:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=f"Only {role}s can do this.")
        return current_user

    return dependency


def get_current_coach(
    current_user: User = Depends(require_role(ROLE_COACH)),
    db: Session = Depends(get_db),
) -> CoachProfile:
    try:
        return identity.resolve_coach_profile(db, current_user.id)
    except NotFoundException as exc:
        raise exc.to_http_exception() from exc


def get_current_member(
    current_user: User = Depends(require_role(ROLE_MEMBER)),
    db: Session = Depends(get_db),
) -> MemberProfile:
    try:
        return identity.resolve_member_profile(db, current_user.id)
    except NotFoundException as exc:
        raise exc.to_http_exception() from exc
