from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from enum import Enum

class TicketStatus(str, Enum):
    OPEN = "open"
    PENDING = "pending"
    RESOLVED = "resolved"
    ESCALATED = "escalated"

class TicketPriority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"

class TicketCreate(BaseModel):
    subject: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1)
    priority: TicketPriority = TicketPriority.NORMAL
    channel: str = Field("web", max_length=20)

class MessageCreate(BaseModel):
    body: str = Field(..., min_length=1)

class TicketResolve(BaseModel):
    resolution_summary: str = Field(..., min_length=1)
    create_article: bool = False
    article_title: Optional[str] = Field(None, max_length=200)

class TicketFeedback(BaseModel):
    score: int = Field(..., ge=1, le=5)

class SupportMessage(BaseModel):
    id: str
    author_id: Optional[str] = None
    author_role: str
    body: str
    created_at: datetime

    class Config:
        from_attributes = True

class SupportTicket(BaseModel):
    id: str
    user_id: str
    subject: str
    status: TicketStatus
    priority: str
    channel: str
    assigned_agent_id: Optional[str] = None
    satisfaction_score: Optional[int] = None
    resolution_summary: Optional[str] = None
    resolved_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

class TicketDetail(BaseModel):
    ticket: SupportTicket
    messages: List[SupportMessage]

class KnowledgeArticleCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1)
    tags: List[str] = []

class KnowledgeArticle(BaseModel):
    id: str
    title: str
    content: str
    tags: Optional[List[str]] = None
    helpful_count: int = 0
    created_at: datetime

    class Config:
        from_attributes = True

class ResolveResponse(BaseModel):
    ticket: SupportTicket
    article: Optional[KnowledgeArticle] = None

class AssistantQuestion(BaseModel):
    question: str = Field(..., min_length=1, max_length=500)

class AssistantSource(BaseModel):
    id: str
    title: str

class AssistantAnswer(BaseModel):
    answer: str
    sources: List[AssistantSource]
