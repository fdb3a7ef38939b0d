import logging
import re
from typing import List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session

from tunibus.database import utcnow
from tunibus.models import KnowledgeArticle, SupportMessage, SupportTicket, User
from tunibus.roles import is_admin_role
from tunibus.support.schemas import KnowledgeArticleCreate, TicketCreate, TicketResolve

logger = logging.getLogger(__name__)

SNIPPET_LENGTH = 280
FALLBACK_ANSWER = (
    "I could not find an answer in our help articles. "
    "Open a support ticket and an agent will get back to you."
)
WORD = re.compile(r"\w{3,}")


class SupportService:
    @staticmethod
    def create_ticket(db: Session, user: User, data: TicketCreate) -> SupportTicket:
        ticket = SupportTicket(
            user_id=user.id,
            subject=data.subject,
            status="open",
            priority=data.priority.value,
            channel=data.channel,
        )
        db.add(ticket)
        db.flush()
        db.add(SupportMessage(ticket_id=ticket.id, author_id=user.id, author_role="user", body=data.message))
        db.commit()
        db.refresh(ticket)
        logger.info("Support ticket %s opened by %s", ticket.id, user.id)
        return ticket

    @staticmethod
    def list_tickets(db: Session, user: User, status: Optional[str] = None, limit: int = 50) -> List[SupportTicket]:
        query = db.query(SupportTicket)
        if not is_admin_role(user.role):
            query = query.filter(SupportTicket.user_id == user.id)
        if status:
            query = query.filter(SupportTicket.status == status)
        return query.order_by(SupportTicket.updated_at.desc()).limit(limit).all()

    @staticmethod
    def get_ticket(db: Session, ticket_id: str) -> Optional[SupportTicket]:
        return db.query(SupportTicket).filter(SupportTicket.id == ticket_id).first()

    @staticmethod
    def can_access(user: User, ticket: SupportTicket) -> bool:
        return is_admin_role(user.role) or ticket.user_id == user.id

    @staticmethod
    def add_message(db: Session, ticket: SupportTicket, author: User, body: str) -> SupportMessage:
        """Agent replies put the ticket in pending, user replies reopen it"""
        by_agent = is_admin_role(author.role)
        message = SupportMessage(
            ticket_id=ticket.id,
            author_id=author.id,
            author_role="agent" if by_agent else "user",
            body=body,
        )
        db.add(message)
        ticket.status = "pending" if by_agent else "open"
        if by_agent and not ticket.assigned_agent_id:
            ticket.assigned_agent_id = author.id
        ticket.updated_at = utcnow()
        db.commit()
        db.refresh(message)
        return message

    @staticmethod
    def resolve(db: Session, ticket: SupportTicket, agent: User, data: TicketResolve) -> Tuple[SupportTicket, Optional[KnowledgeArticle]]:
        ticket.status = "resolved"
        ticket.resolved_at = utcnow()
        ticket.resolution_summary = data.resolution_summary
        ticket.assigned_agent_id = ticket.assigned_agent_id or agent.id
        db.add(SupportMessage(ticket_id=ticket.id, author_id=agent.id, author_role="agent", body=data.resolution_summary))

        article = None
        if data.create_article:
            article = KnowledgeArticle(
                title=data.article_title or ticket.subject,
                content=data.resolution_summary,
                tags=["ticket"],
                created_by=agent.id,
            )
            db.add(article)

        db.commit()
        db.refresh(ticket)
        if article:
            db.refresh(article)
        logger.info("Support ticket %s resolved", ticket.id)
        return ticket, article

    @staticmethod
    def rate(db: Session, ticket: SupportTicket, score: int) -> SupportTicket:
        if ticket.status != "resolved":
            raise ValueError("Only resolved tickets can be rated")
        ticket.satisfaction_score = score
        db.commit()
        db.refresh(ticket)
        return ticket

    # ---------------------------
    # Knowledge base
    # ---------------------------
    @staticmethod
    def search_articles(db: Session, q: Optional[str] = None, limit: int = 30) -> List[KnowledgeArticle]:
        query = db.query(KnowledgeArticle)
        if q:
            pattern = f"%{q.strip()}%"
            query = query.filter(or_(KnowledgeArticle.title.ilike(pattern), KnowledgeArticle.content.ilike(pattern)))
        return query.order_by(KnowledgeArticle.helpful_count.desc(), KnowledgeArticle.created_at.desc()).limit(limit).all()

    @staticmethod
    def create_article(db: Session, author: User, data: KnowledgeArticleCreate) -> KnowledgeArticle:
        article = KnowledgeArticle(title=data.title, content=data.content, tags=data.tags, created_by=author.id)
        db.add(article)
        db.commit()
        db.refresh(article)
        return article

    @staticmethod
    def mark_helpful(db: Session, article_id: str) -> Optional[KnowledgeArticle]:
        article = db.query(KnowledgeArticle).filter(KnowledgeArticle.id == article_id).first()
        if not article:
            return None
        article.helpful_count = (article.helpful_count or 0) + 1
        db.commit()
        db.refresh(article)
        return article

    @staticmethod
    def answer_question(db: Session, question: str) -> dict:
        """Answer from the help article sharing the most words with the question"""
        words = {w.lower() for w in WORD.findall(question)}
        scored = []
        for article in db.query(KnowledgeArticle).all():
            text = f"{article.title} {article.content}".lower()
            score = sum(1 for w in words if w in text)
            if score:
                scored.append((score, article.helpful_count or 0, article))

        if not scored:
            return {"answer": FALLBACK_ANSWER, "sources": []}

        scored.sort(key=lambda item: (item[0], item[1]), reverse=True)
        best = scored[0][2]
        answer = best.content
        if len(answer) > SNIPPET_LENGTH:
            answer = answer[:SNIPPET_LENGTH] + "..."
        return {
            "answer": answer,
            "sources": [{"id": a.id, "title": a.title} for _, _, a in scored[:3]],
        }
