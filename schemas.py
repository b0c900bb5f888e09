"""
Database Schemas for FundVerse

Pydantic models for the stored records and the views computed from them.
Each stored model maps to the MongoDB collection with the lowercase class name:
- Idea -> "idea"
- Campaign -> "campaign"
- Document -> "document"

CampaignCard and CampaignWithIdea are built on read and never stored.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class Idea(BaseModel):
    id: int = Field(..., ge=1, description="Idea id")
    title: str = Field(..., description="Idea title")
    description: str = Field(..., description="What the idea is about")
    funding_goal: int = Field(..., gt=0, description="Amount the idea needs raised")
    current_funding: int = Field(0, ge=0, description="Amount raised so far")
    legal_entity: str = Field(..., description="Entity legally behind the idea")
    status: Optional[str] = Field(None, description="pending, approved or rejected")
    contact_info: str = Field(..., description="How to reach the owner")
    category: str = Field(..., description="e.g. Technology, Healthcare, Education")
    business_registration: int = Field(..., ge=0, le=255, description="Registration flag or code")
    created_at: int = Field(..., ge=0, description="Nanoseconds since epoch")
    updated_at: int = Field(..., ge=0, description="Nanoseconds since epoch")
    doc_ids: List[int] = Field(default_factory=list, description="Ids of uploaded documents")


class Campaign(BaseModel):
    id: int = Field(..., ge=1, description="Campaign id")
    idea_id: int = Field(..., ge=1, description="Idea being funded")
    amount_raised: int = Field(0, ge=0, description="Amount raised so far")
    goal: int = Field(..., gt=0, description="Target amount")
    end_date: int = Field(..., ge=0, description="Seconds since epoch")


class Document(BaseModel):
    id: int = Field(..., ge=1, description="Document id")
    idea_id: int = Field(..., ge=1, description="Idea the document belongs to")
    name: str = Field(..., description="Original filename")
    content_type: str = Field(..., description="MIME type, e.g. application/pdf")
    data: bytes = Field(b"", description="Raw file bytes")
    uploaded_at: int = Field(..., ge=0, description="Upload timestamp given by the caller")


class DocumentMeta(BaseModel):
    id: int
    idea_id: int
    name: str
    content_type: str
    size: int
    uploaded_at: int


class CampaignStatus(str, Enum):
    active = "Active"
    ended = "Ended"


class CampaignCard(BaseModel):
    id: int
    idea_id: int
    title: str = Field(..., description="Title of the linked idea")
    category: str = Field(..., description="Category of the linked idea")
    amount_raised: int
    goal: int
    end_date: int
    days_left: int = Field(..., description="Whole days until end_date; negative once ended")


class CampaignWithIdea(BaseModel):
    campaign: CampaignCard
    idea: Idea
