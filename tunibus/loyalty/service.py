import logging
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from tunibus.database import utcnow
from tunibus.models import (
    LoyaltyBadge, LoyaltyBalance, LoyaltyMission, LoyaltyMissionProgress, LoyaltyTransaction, RewardTier, User
)

logger = logging.getLogger(__name__)


class RecipientNotFound(Exception):
    pass


class LoyaltyService:
    """Points ledger, missions, tiers and badges.

    credit/debit only stage changes on the session; callers commit.
    """

    @staticmethod
    def get_balance(db: Session, user_id: str) -> int:
        row = db.query(LoyaltyBalance).filter(LoyaltyBalance.user_id == user_id).first()
        return row.balance if row else 0

    @staticmethod
    def _apply(db: Session, user_id: str, kind: str, amount: int, source: str, details: Optional[dict]) -> LoyaltyTransaction:
        """Move the balance with a single guarded UPDATE; a debit larger than the balance is refused"""
        if amount <= 0:
            raise ValueError("Amount must be positive")

        balances = db.query(LoyaltyBalance).filter(LoyaltyBalance.user_id == user_id)
        if kind == "debit":
            updated = balances.filter(LoyaltyBalance.balance >= amount).update(
                {LoyaltyBalance.balance: LoyaltyBalance.balance - amount}, synchronize_session="evaluate"
            )
            if not updated:
                raise ValueError("Insufficient balance")
        else:
            updated = balances.update(
                {LoyaltyBalance.balance: LoyaltyBalance.balance + amount}, synchronize_session="evaluate"
            )
            if not updated:
                db.add(LoyaltyBalance(user_id=user_id, balance=amount))

        transaction = LoyaltyTransaction(
            user_id=user_id, type=kind, amount=amount, source=source, details=details or {}
        )
        db.add(transaction)
        db.flush()
        return transaction

    @staticmethod
    def credit(db: Session, user_id: str, amount: int, source: str, details: Optional[dict] = None) -> LoyaltyTransaction:
        return LoyaltyService._apply(db, user_id, "credit", amount, source, details)

    @staticmethod
    def debit(db: Session, user_id: str, amount: int, source: str, details: Optional[dict] = None) -> LoyaltyTransaction:
        return LoyaltyService._apply(db, user_id, "debit", amount, source, details)

    @staticmethod
    def current_tier(tiers: List[RewardTier], balance: int) -> Optional[RewardTier]:
        """Highest tier whose threshold the balance reaches"""
        reached = [t for t in tiers if t.min_points <= balance]
        return max(reached, key=lambda t: t.min_points) if reached else None

    @staticmethod
    def summary(db: Session, user_id: str) -> Dict:
        balance = LoyaltyService.get_balance(db, user_id)
        transactions = (
            db.query(LoyaltyTransaction)
            .filter(LoyaltyTransaction.user_id == user_id)
            .order_by(LoyaltyTransaction.created_at.desc())
            .limit(20)
            .all()
        )

        progress_by_mission = {
            p.mission_id: p
            for p in db.query(LoyaltyMissionProgress).filter(LoyaltyMissionProgress.user_id == user_id).all()
        }
        missions = []
        for mission in db.query(LoyaltyMission).filter(LoyaltyMission.active.is_(True)).order_by(LoyaltyMission.created_at).all():
            progress = progress_by_mission.get(mission.id)
            missions.append({
                "id": mission.id,
                "title": mission.title,
                "description": mission.description,
                "points": mission.points,
                "progress": progress.progress if progress else 0,
                "completed": bool(progress.completed) if progress else False,
                "ends_at": mission.ends_at,
            })

        tiers = db.query(RewardTier).order_by(RewardTier.min_points.asc()).all()
        return {
            "balance": balance,
            "transactions": transactions,
            "missions": missions,
            "badges": LoyaltyService.badges(db, user_id),
            "tiers": tiers,
            "current_tier": LoyaltyService.current_tier(tiers, balance),
        }

    @staticmethod
    def transfer(db: Session, sender: User, recipient_email: str, amount: int, note: Optional[str] = None) -> Dict:
        recipient = db.query(User).filter(User.email == recipient_email.lower()).first()
        if not recipient:
            raise RecipientNotFound("Recipient not found")
        if recipient.id == sender.id:
            raise ValueError("You cannot transfer points to yourself")
        try:
            LoyaltyService.debit(db, sender.id, amount, "transfer", {"to": recipient.id, "note": note})
        except ValueError:
            db.rollback()
            raise
        LoyaltyService.credit(db, recipient.id, amount, "transfer", {"from": sender.id, "note": note})
        db.commit()
        logger.info("Transferred %d points from %s to %s", amount, sender.id, recipient.id)
        return {
            "balance": LoyaltyService.get_balance(db, sender.id),
            "recipient_id": recipient.id,
            "amount": amount,
        }

    @staticmethod
    def badges(db: Session, user_id: str) -> List[LoyaltyBadge]:
        return (
            db.query(LoyaltyBadge)
            .filter(LoyaltyBadge.user_id == user_id)
            .order_by(LoyaltyBadge.awarded_at.desc())
            .all()
        )

    @staticmethod
    def grant_badge(db: Session, user_id: str, code: str, label: str) -> Optional[LoyaltyBadge]:
        if not db.query(User).filter(User.id == user_id).first():
            return None
        badge = LoyaltyBadge(user_id=user_id, code=code, label=label)
        db.add(badge)
        db.commit()
        db.refresh(badge)
        return badge

    @staticmethod
    def update_mission_progress(db: Session, mission_id: str, user_id: str, delta: int) -> Optional[LoyaltyMissionProgress]:
        """Move a user's mission progress by delta; missing mission or user gives None"""
        mission = db.query(LoyaltyMission).filter(LoyaltyMission.id == mission_id).first()
        if not mission or not db.query(User).filter(User.id == user_id).first():
            return None

        progress = (
            db.query(LoyaltyMissionProgress)
            .filter(LoyaltyMissionProgress.mission_id == mission_id, LoyaltyMissionProgress.user_id == user_id)
            .first()
        )
        if not progress:
            progress = LoyaltyMissionProgress(mission_id=mission_id, user_id=user_id, progress=0)
            db.add(progress)

        progress.progress = max(0, (progress.progress or 0) + delta)
        progress.completed = mission.points > 0 and progress.progress >= mission.points
        progress.updated_at = utcnow()
        db.commit()
        db.refresh(progress)
        return progress
