import logging
import threading
import time
from typing import Callable, List, Optional

from database import (
    MAX_INT64,
    IdAllocator,
    count_records,
    find_record,
    find_records,
    insert_record,
    push_value,
    record_exists,
)
from schemas import Campaign, Document, Idea

logger = logging.getLogger(__name__)

IDEAS = "idea"
CAMPAIGNS = "campaign"
DOCUMENTS = "document"


class StoreError(Exception):
    pass


class IdeaRejected(StoreError):
    """Idea creation input was invalid. Nothing was stored.

    Callers are not expected to recover from this; the request fails as a whole.
    """

    MESSAGE = "Invalid input: all fields must be provided and funding_goal must be > 0."

    def __init__(self, message: str = MESSAGE):
        super().__init__(message)


class DocumentRejected(StoreError):
    """Document upload input was invalid. Nothing was stored."""


class CampaignError(StoreError):
    """Recoverable campaign creation failure. ``code`` says which check failed."""

    GOAL_NOT_POSITIVE = "goal_not_positive"
    IDEA_NOT_FOUND = "idea_not_found"
    GOAL_TOO_LARGE = "goal_too_large"
    INVALID_END_DATE = "invalid_end_date"

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message

    @classmethod
    def goal_not_positive(cls) -> "CampaignError":
        return cls(cls.GOAL_NOT_POSITIVE, "goal must be > 0")

    @classmethod
    def idea_not_found(cls) -> "CampaignError":
        return cls(cls.IDEA_NOT_FOUND, "idea_id not found")

    @classmethod
    def goal_too_large(cls) -> "CampaignError":
        return cls(cls.GOAL_TOO_LARGE, f"goal must be <= {MAX_INT64}")

    @classmethod
    def invalid_end_date(cls) -> "CampaignError":
        return cls(cls.INVALID_END_DATE, f"end_date must be between 0 and {MAX_INT64}")


class IdeaStore:
    def __init__(self, db, ids: IdAllocator, clock_ns: Callable[[], int] = time.time_ns):
        self.db = db
        self.ids = ids
        self.clock_ns = clock_ns
        self.lock = threading.Lock()

    def create_idea(self, title: str, description: str, funding_goal: int, legal_entity: str,
                    contact_info: str, category: str, business_registration: int) -> int:
        if (
            not title
            or not description
            or not 0 < funding_goal <= MAX_INT64
            or not legal_entity
            or not contact_info
            or not category
            or not 0 <= business_registration <= 255
        ):
            logger.warning("rejected idea %r: invalid input", title)
            raise IdeaRejected()

        now = self.clock_ns()
        with self.lock:
            idea_id = self.ids.next(IDEAS)
            insert_record(self.db, IDEAS, idea_id, {
                "title": title,
                "description": description,
                "funding_goal": funding_goal,
                "current_funding": 0,
                "legal_entity": legal_entity,
                "status": "pending",
                "contact_info": contact_info,
                "category": category,
                "business_registration": business_registration,
                "created_at": now,
                "updated_at": now,
                "doc_ids": [],
            })
        logger.info("created idea %d", idea_id)
        return idea_id

    def get_idea(self, idea_id: int) -> Optional[Idea]:
        doc = find_record(self.db, IDEAS, idea_id)
        return Idea(**doc) if doc else None

    def list_ideas(self) -> List[Idea]:
        return [Idea(**doc) for doc in find_records(self.db, IDEAS)]

    def exists(self, idea_id: int) -> bool:
        return record_exists(self.db, IDEAS, idea_id)

    def count(self) -> int:
        return count_records(self.db, IDEAS)


class DocumentStore:
    def __init__(self, db, ids: IdAllocator, ideas: IdeaStore):
        self.db = db
        self.ids = ids
        self.ideas = ideas
        self.lock = threading.Lock()

    def upload_doc(self, idea_id: int, name: str, content_type: str, data: bytes,
                   uploaded_at: int) -> Optional[int]:
        """Store a document for an idea and attach it to the idea's doc_ids.

        Returns the new document id, or None when the idea does not exist.
        """
        if not 0 <= uploaded_at <= MAX_INT64:
            logger.warning("rejected document %r: uploaded_at %d", name, uploaded_at)
            raise DocumentRejected(f"uploaded_at must be between 0 and {MAX_INT64}")
        with self.lock:
            if not self.ideas.exists(idea_id):
                logger.info("document %r not stored: idea %d not found", name, idea_id)
                return None

            doc_id = self.ids.next(DOCUMENTS)
            insert_record(self.db, DOCUMENTS, doc_id, {
                "idea_id": idea_id,
                "name": name,
                "content_type": content_type,
                "data": bytes(data),
                "uploaded_at": uploaded_at,
            })
            matched = push_value(self.db, IDEAS, idea_id, "doc_ids", doc_id,
                                 updated_at=self.ideas.clock_ns())
        if not matched:
            logger.error("document %d stored but idea %d vanished before attach", doc_id, idea_id)
        else:
            logger.info("uploaded document %d for idea %d", doc_id, idea_id)
        return doc_id

    def get_doc(self, doc_id: int) -> Optional[Document]:
        doc = find_record(self.db, DOCUMENTS, doc_id)
        return Document(**doc) if doc else None

    def count(self) -> int:
        return count_records(self.db, DOCUMENTS)


class CampaignStore:
    def __init__(self, db, ids: IdAllocator, ideas: IdeaStore):
        self.db = db
        self.ids = ids
        self.ideas = ideas
        self.lock = threading.Lock()

    def create_campaign(self, idea_id: int, goal: int, end_date: int) -> int:
        if goal <= 0:
            logger.warning("rejected campaign for idea %d: goal %d", idea_id, goal)
            raise CampaignError.goal_not_positive()
        if goal > MAX_INT64:
            logger.warning("rejected campaign for idea %d: goal too large", idea_id)
            raise CampaignError.goal_too_large()
        if not 0 <= end_date <= MAX_INT64:
            logger.warning("rejected campaign for idea %d: end_date %d", idea_id, end_date)
            raise CampaignError.invalid_end_date()
        with self.lock:
            if not self.ideas.exists(idea_id):
                logger.warning("rejected campaign: idea %d not found", idea_id)
                raise CampaignError.idea_not_found()
            campaign_id = self.ids.next(CAMPAIGNS)
            insert_record(self.db, CAMPAIGNS, campaign_id, {
                "idea_id": idea_id,
                "amount_raised": 0,
                "goal": goal,
                "end_date": end_date,
            })
        logger.info("created campaign %d for idea %d", campaign_id, idea_id)
        return campaign_id

    def list_campaigns(self) -> List[Campaign]:
        return [Campaign(**doc) for doc in find_records(self.db, CAMPAIGNS)]

    def get_campaign(self, campaign_id: int) -> Optional[Campaign]:
        # campaigns are few; a scan is fine
        for campaign in self.list_campaigns():
            if campaign.id == campaign_id:
                return campaign
        return None

    def count(self) -> int:
        return count_records(self.db, CAMPAIGNS)
