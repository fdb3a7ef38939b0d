from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from tunibus.auth.dependencies import get_current_user, require_admin
from tunibus.database import get_db
from tunibus.models import User
from tunibus.support.schemas import (
    TicketCreate, MessageCreate, TicketResolve, TicketFeedback, TicketStatus,
    SupportTicket, SupportMessage, TicketDetail, ResolveResponse,
    KnowledgeArticle, KnowledgeArticleCreate, AssistantQuestion, AssistantAnswer
)
from tunibus.support.service import SupportService

router = APIRouter()


def _accessible_ticket(db: Session, ticket_id: str, user: User):
    ticket = SupportService.get_ticket(db, ticket_id)
    if not ticket:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Ticket not found")
    if not SupportService.can_access(user, ticket):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not your ticket")
    return ticket


@router.post("/tickets", response_model=SupportTicket, status_code=status.HTTP_201_CREATED)
def create_ticket(data: TicketCreate, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return SupportService.create_ticket(db, current_user, data)


@router.get("/tickets", response_model=List[SupportTicket])
def list_tickets(
    ticket_status: Optional[TicketStatus] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Own tickets; administrators see every ticket"""
    return SupportService.list_tickets(
        db, current_user, status=ticket_status.value if ticket_status else None, limit=limit
    )


@router.get("/tickets/{ticket_id}", response_model=TicketDetail)
def get_ticket(ticket_id: str, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    ticket = _accessible_ticket(db, ticket_id, current_user)
    return {"ticket": ticket, "messages": ticket.messages}


@router.post("/tickets/{ticket_id}/messages", response_model=SupportMessage, status_code=status.HTTP_201_CREATED)
def add_message(
    ticket_id: str,
    data: MessageCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    ticket = _accessible_ticket(db, ticket_id, current_user)
    return SupportService.add_message(db, ticket, current_user, data.body)


@router.post("/tickets/{ticket_id}/resolve", response_model=ResolveResponse)
def resolve_ticket(
    ticket_id: str,
    data: TicketResolve,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Close a ticket, optionally turning the answer into a help article"""
    ticket = SupportService.get_ticket(db, ticket_id)
    if not ticket:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Ticket not found")
    ticket, article = SupportService.resolve(db, ticket, admin, data)
    return {"ticket": ticket, "article": article}


@router.post("/tickets/{ticket_id}/feedback", response_model=SupportTicket)
def rate_ticket(
    ticket_id: str,
    data: TicketFeedback,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    ticket = _accessible_ticket(db, ticket_id, current_user)
    try:
        return SupportService.rate(db, ticket, data.score)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/knowledge", response_model=List[KnowledgeArticle])
def search_knowledge(q: Optional[str] = Query(None), db: Session = Depends(get_db)):
    return SupportService.search_articles(db, q)


@router.post("/knowledge", response_model=KnowledgeArticle, status_code=status.HTTP_201_CREATED)
def create_article(data: KnowledgeArticleCreate, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return SupportService.create_article(db, admin, data)


@router.post("/knowledge/{article_id}/helpful", response_model=KnowledgeArticle)
def mark_helpful(article_id: str, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    article = SupportService.mark_helpful(db, article_id)
    if not article:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Article not found")
    return article


@router.post("/assistant", response_model=AssistantAnswer)
def support_assistant(data: AssistantQuestion, db: Session = Depends(get_db)):
    """Answer a question from the knowledge base"""
    return SupportService.answer_question(db, data.question)
