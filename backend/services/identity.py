"""Maps authenticated users to coach/member profiles."""

from sqlalchemy.orm import Session

from backend.core import config
from backend.core.exceptions import NotFoundException
from backend.models.profile import CoachProfile, MemberProfile


def resolve_member_profile(db: Session, user_id: int) -> MemberProfile:
    member = db.query(MemberProfile).filter(MemberProfile.user_id == user_id).first()
    if member is None:
        raise NotFoundException('Member profile not found.', details={'user_id': user_id})
    return member


def resolve_coach_profile(db: Session, user_id: int) -> CoachProfile:
    coach = db.query(CoachProfile).filter(CoachProfile.user_id == user_id).first()
    if coach is None:
        raise NotFoundException('Coach profile not found.', details={'user_id': user_id})
    return coach


def get_active_coach_id(db: Session) -> int:
    """Coach that member bookings go to.

    ``ACTIVE_COACH_ID`` wins when configured; otherwise the oldest active
    coach profile is used.
    """
    if config.ACTIVE_COACH_ID is not None:
        coach = db.query(CoachProfile).filter(
            CoachProfile.id == config.ACTIVE_COACH_ID,
            CoachProfile.is_active.is_(True),
        ).first()
        if coach is None:
            raise NotFoundException(
                'Configured coach is missing or inactive.',
                details={'coach_id': config.ACTIVE_COACH_ID},
            )
        return coach.id

    coach = db.query(CoachProfile).filter(
        CoachProfile.is_active.is_(True),
    ).order_by(CoachProfile.id.asc()).first()
    if coach is None:
        raise NotFoundException('No coach configured.')
    return coach.id
