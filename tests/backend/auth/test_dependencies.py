import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from backend.auth.dependencies import (
    ROLE_COACH,
    ROLE_MEMBER,
    get_current_coach,
    get_current_member,
    get_current_user,
    require_role,
)
from backend.auth.jwt_handler import create_access_token, decode_access_token
from backend.models.user import User


def bearer(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme='Bearer', credentials=token)


def test_access_token_round_trips_subject_and_role() -> None:
    payload = decode_access_token(create_access_token('coach@example.com', role=ROLE_COACH))

    assert payload['sub'] == 'coach@example.com'
    assert payload['role'] == ROLE_COACH


def test_get_current_user_matches_email_case_insensitively(db, make_member) -> None:
    member = make_member(email='member@example.com')

    user = get_current_user(credentials=bearer(create_access_token('MEMBER@example.com')), db=db)

    assert user.id == member.user_id


def test_get_current_user_rejects_garbage_token(db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_current_user(credentials=bearer('not-a-jwt'), db=db)

    assert exception_info.value.status_code == 401
    assert exception_info.value.detail == 'Invalid token'


def test_get_current_user_rejects_expired_token(db, make_member) -> None:
    make_member()
    token = create_access_token('member@example.com', expires_minutes=-5)

    with pytest.raises(HTTPException) as exception_info:
        get_current_user(credentials=bearer(token), db=db)

    assert exception_info.value.status_code == 401


def test_get_current_user_rejects_unknown_user(db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_current_user(credentials=bearer(create_access_token('ghost@example.com')), db=db)

    assert exception_info.value.detail == 'User not found'


def test_require_role_rejects_other_roles() -> None:
    dependency = require_role(ROLE_COACH)

    with pytest.raises(HTTPException) as exception_info:
        dependency(current_user=User(email='member@example.com', role=ROLE_MEMBER))

    assert exception_info.value.status_code == 403
    assert dependency(current_user=User(email='coach@example.com', role='Coach')).role == 'Coach'


def test_profile_dependencies_resolve_profiles(db, make_coach, make_member) -> None:
    coach = make_coach()
    member = make_member()
    coach_user = db.get(User, coach.user_id)
    member_user = db.get(User, member.user_id)

    assert get_current_coach(current_user=coach_user, db=db).id == coach.id
    assert get_current_member(current_user=member_user, db=db).id == member.id

    with pytest.raises(HTTPException) as exception_info:
        get_current_coach(current_user=member_user, db=db)

    assert exception_info.value.status_code == 404
