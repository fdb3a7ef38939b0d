from typing import Optional

from fastapi import APIRouter, Depends, Header
from sqlalchemy.orm import Session

from tunibus.assistant.service import AssistantService
from tunibus.auth.dependencies import get_current_user
from tunibus.database import get_db
from tunibus.models import User

router = APIRouter()


@router.get("/assistant")
def assistant_recommendations(
    user_agent: Optional[str] = Header(None),
    accept_language: Optional[str] = Header(None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Precomputed recommendations for the assistant panel"""
    return AssistantService.recommendations(
        db, current_user, user_agent=user_agent, accept_language=accept_language
    )
