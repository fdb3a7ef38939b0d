from datetime import datetime
from typing import Dict, Optional

from sqlalchemy.orm import Session, joinedload

from tunibus.assistant.engine import build_recommendations
from tunibus.database import utcnow
from tunibus.loyalty.service import LoyaltyService
from tunibus.models import Reservation, SearchLog, User

SEARCH_HISTORY_SIZE = 25


class AssistantService:
    """Loads a traveller's history and hands it to the recommendation engine"""

    @staticmethod
    def recommendations(
        db: Session,
        user: User,
        user_agent: Optional[str] = None,
        accept_language: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Dict:
        reservations = (
            db.query(Reservation)
            .options(joinedload(Reservation.trip))
            .filter(Reservation.client_id == user.id, Reservation.status != "cancelled")
            .all()
        )
        searches = (
            db.query(SearchLog)
            .filter(SearchLog.user_id == user.id)
            .order_by(SearchLog.created_at.desc())
            .limit(SEARCH_HISTORY_SIZE)
            .all()
        )
        return build_recommendations(
            pairs=[(r, r.trip) for r in reservations if r.trip is not None],
            search_history=searches,
            loyalty_balance=LoyaltyService.get_balance(db, user.id),
            now=now or utcnow(),
            user_agent=user_agent,
            accept_language=accept_language,
        )
