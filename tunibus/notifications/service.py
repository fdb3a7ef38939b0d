import logging
from collections import defaultdict
from datetime import datetime, time, timedelta
from typing import Dict, List, Optional, Set

from sqlalchemy import or_
from sqlalchemy.orm import Session

from tunibus.database import to_naive_utc, utcnow
from tunibus.models import (
    Notification, NotificationDelegation, NotificationDigest, NotificationEngagement, NotificationPreference, User
)
from tunibus.notifications.schemas import DelegationCreate, PreferencesUpdate

logger = logging.getLogger(__name__)

PRIORITY_LEVELS = {"low": 0, "normal": 1, "high": 2}
DEFAULT_CHANNELS = {"email": True, "push": True, "sms": False}
DIGEST_DELAY = timedelta(hours=1)


def priority_level(value: Optional[str]) -> int:
    return PRIORITY_LEVELS.get((value or "normal").lower(), PRIORITY_LEVELS["normal"])


def quiet_window_end(quiet_hours: Optional[dict], now: datetime) -> datetime:
    """Next end of the quiet window, or an hour from now when no window is set"""
    if not quiet_hours or not quiet_hours.get("end"):
        return now + DIGEST_DELAY
    try:
        hours, minutes = (int(part) for part in quiet_hours["end"].split(":"))
        end = datetime.combine(now.date(), time(hours, minutes))
    except (TypeError, ValueError):
        logger.warning("Ignoring malformed quiet hours end %r", quiet_hours.get("end"))
        return now + DIGEST_DELAY
    if end <= now:
        end += timedelta(days=1)
    return end


class NotificationService:
    @staticmethod
    def get_preferences(db: Session, user_id: str, create: bool = False) -> NotificationPreference:
        prefs = db.query(NotificationPreference).filter(NotificationPreference.user_id == user_id).first()
        if prefs:
            return prefs
        prefs = NotificationPreference(
            user_id=user_id,
            channels=dict(DEFAULT_CHANNELS),
            priority_threshold="normal",
            quiet_mode=False,
            vacation_mode=False,
        )
        if create:
            db.add(prefs)
            db.flush()
        return prefs

    @staticmethod
    def update_preferences(db: Session, user_id: str, data: PreferencesUpdate) -> NotificationPreference:
        prefs = NotificationService.get_preferences(db, user_id, create=True)
        update_data = data.model_dump(mode="json", exclude_unset=True)

        if update_data.get("vacation_delegate_user_id"):
            NotificationService._check_delegate(db, user_id, update_data["vacation_delegate_user_id"])

        if "channels" in update_data and update_data["channels"] is not None:
            update_data["channels"] = {**DEFAULT_CHANNELS, **(prefs.channels or {}), **update_data["channels"]}
        for field, value in update_data.items():
            setattr(prefs, field, value)

        db.commit()
        db.refresh(prefs)
        return prefs

    @staticmethod
    def _check_delegate(db: Session, user_id: str, delegate_id: str):
        if delegate_id == user_id:
            raise ValueError("You cannot delegate notifications to yourself")
        if not db.query(User).filter(User.id == delegate_id).first():
            raise ValueError("Delegate user not found")

    @staticmethod
    def set_delegation(db: Session, user_id: str, data: DelegationCreate) -> NotificationDelegation:
        """Create or replace the user's delegation; a user has at most one"""
        NotificationService._check_delegate(db, user_id, data.delegate_user_id)
        delegation = db.query(NotificationDelegation).filter(NotificationDelegation.user_id == user_id).first()
        if not delegation:
            delegation = NotificationDelegation(user_id=user_id)
            db.add(delegation)

        delegation.delegate_user_id = data.delegate_user_id
        delegation.starts_at = utcnow()
        delegation.ends_at = to_naive_utc(data.ends_at) if data.ends_at else None
        delegation.active = data.active
        db.commit()
        db.refresh(delegation)
        logger.info("Notifications of %s delegated to %s", user_id, data.delegate_user_id)
        return delegation

    @staticmethod
    def get_active_delegation(db: Session, user_id: str, now: Optional[datetime] = None) -> Optional[NotificationDelegation]:
        now = now or utcnow()
        return (
            db.query(NotificationDelegation)
            .filter(
                NotificationDelegation.user_id == user_id,
                NotificationDelegation.active.is_(True),
                or_(NotificationDelegation.ends_at.is_(None), NotificationDelegation.ends_at >= now),
            )
            .first()
        )

    @staticmethod
    def _forward(db: Session, delegate_id: str, owner_id: str, payload: Dict, priority: str,
                 visited: Set[str], now: Optional[datetime]) -> Dict:
        delegated = dict(payload)
        delegated["details"] = {**(payload.get("details") or {}), "delegated_from": owner_id}
        return NotificationService.dispatch_to_user(
            db, delegate_id, delegated, priority=priority, visited=visited, now=now
        )

    @staticmethod
    def dispatch_to_user(
        db: Session,
        user_id: str,
        payload: Dict,
        priority: str = "normal",
        visited: Optional[Set[str]] = None,
        now: Optional[datetime] = None,
    ) -> Dict:
        """Route one notification according to the recipient's settings.

        payload holds title, body, category, optional channel and details.
        Nothing is committed here; the caller owns the transaction.
        """
        visited = set(visited or ())
        if user_id in visited:
            return {"skipped": True, "reason": "delegation_loop"}
        visited.add(user_id)

        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            return {"skipped": True, "reason": "unknown_user"}

        category = payload.get("category", "general")
        channel = payload.get("channel", "push")
        prefs = NotificationService.get_preferences(db, user_id)

        if channel == "email" and user.notify_email is False:
            return {"skipped": True, "reason": "email_disabled"}
        if category == "reservation" and user.notify_reservations is False:
            return {"skipped": True, "reason": "reservations_disabled"}
        if category == "alert" and user.notify_alerts is False:
            return {"skipped": True, "reason": "alerts_disabled"}

        # An explicit delegation wins over the owner's channel and vacation settings
        delegation = NotificationService.get_active_delegation(db, user_id, now)
        if delegation:
            return NotificationService._forward(
                db, delegation.delegate_user_id, user_id, payload, priority, visited, now
            )

        if not (prefs.channels or DEFAULT_CHANNELS).get(channel, True):
            return {"skipped": True, "reason": "channel_disabled"}

        if prefs.vacation_mode and prefs.vacation_delegate_user_id:
            return NotificationService._forward(
                db, prefs.vacation_delegate_user_id, user_id, payload, priority, visited, now
            )

        if priority_level(priority) < priority_level(prefs.priority_threshold):
            return {"skipped": True, "reason": "below_threshold"}

        now = now or utcnow()
        if prefs.quiet_mode and priority_level(priority) < PRIORITY_LEVELS["high"]:
            digest = NotificationDigest(
                user_id=user_id,
                payload={**payload, "priority": priority},
                scheduled_for=quiet_window_end(prefs.quiet_hours, now),
            )
            db.add(digest)
            db.flush()
            return {"queued_digest": digest.id}

        notification = Notification(
            user_id=user_id,
            title=payload.get("title", ""),
            body=payload.get("body"),
            category=category,
            priority=priority,
            details=payload.get("details") or {},
        )
        db.add(notification)
        db.flush()
        db.add(NotificationEngagement(notification_id=notification.id, user_id=user_id, event="delivered"))
        return {"notification_id": notification.id}

    @staticmethod
    def run_due_digests(db: Session, now: Optional[datetime] = None) -> int:
        """Deliver queued digests whose time has come, one summary per user"""
        now = now or utcnow()
        due = (
            db.query(NotificationDigest)
            .filter(NotificationDigest.delivered_at.is_(None), NotificationDigest.scheduled_for <= now)
            .order_by(NotificationDigest.created_at.asc())
            .all()
        )
        by_user: Dict[str, List[NotificationDigest]] = defaultdict(list)
        for digest in due:
            by_user[digest.user_id].append(digest)

        for user_id, digests in by_user.items():
            titles = [d.payload.get("title", "") for d in digests]
            notification = Notification(
                user_id=user_id,
                title=f"You have {len(digests)} new notifications",
                body="\n".join(t for t in titles if t),
                category="digest",
                priority="normal",
                details={"items": [d.payload for d in digests]},
            )
            db.add(notification)
            db.flush()
            db.add(NotificationEngagement(notification_id=notification.id, user_id=user_id, event="delivered"))
            for digest in digests:
                digest.delivered_at = now

        db.commit()
        if by_user:
            logger.info("Delivered %d notification digests", len(by_user))
        return len(by_user)

    @staticmethod
    def list_notifications(db: Session, user_id: str, include_read: bool = False, limit: int = 25) -> List[Notification]:
        query = db.query(Notification).filter(Notification.user_id == user_id)
        if not include_read:
            query = query.filter(Notification.read.is_(False))
        return query.order_by(Notification.created_at.desc()).limit(limit).all()

    @staticmethod
    def mark_read(db: Session, user_id: str, notification_id: str) -> Optional[Notification]:
        notification = (
            db.query(Notification)
            .filter(Notification.id == notification_id, Notification.user_id == user_id)
            .first()
        )
        if not notification:
            return None
        if not notification.read:
            notification.read = True
            notification.read_at = utcnow()
            db.add(NotificationEngagement(notification_id=notification.id, user_id=user_id, event="read"))
            db.commit()
            db.refresh(notification)
        return notification

    @staticmethod
    def record_action(db: Session, user_id: str, notification_id: str, action: str) -> Optional[Notification]:
        notification = db.query(Notification).filter(Notification.id == notification_id).first()
        if not notification:
            return None
        if notification.user_id != user_id:
            raise PermissionError("Not your notification")

        now = utcnow()
        notification.details = {
            **(notification.details or {}),
            "last_action": action,
            "action_taken_at": now.isoformat(),
        }
        notification.read = True
        notification.read_at = notification.read_at or now
        db.add(NotificationEngagement(notification_id=notification.id, user_id=user_id, event=f"action:{action}"))
        db.commit()
        db.refresh(notification)
        return notification
