import logging
import time
from contextlib import asynccontextmanager
from urllib.parse import quote
from typing import Callable, List, Optional

from fastapi import Depends, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

from config import DATABASE_NAME, DATABASE_URL, SEED_ON_STARTUP, configure_logging
from database import IdAllocator, backing_name, connect
from schemas import CampaignCard, CampaignStatus, CampaignWithIdea, DocumentMeta, Idea
from stores import CampaignError, CampaignStore, DocumentRejected, DocumentStore, IdeaRejected, IdeaStore
from views import ViewComposer, now_secs

logger = logging.getLogger(__name__)


class Services:
    """The stores and views one app instance works against."""

    def __init__(self, db, clock: Callable[[], int] = now_secs, clock_ns: Optional[Callable[[], int]] = None):
        self.db = db
        self.ids = IdAllocator(db)
        self.ideas = IdeaStore(db, self.ids, clock_ns=clock_ns or time.time_ns)
        self.documents = DocumentStore(db, self.ids, self.ideas)
        self.campaigns = CampaignStore(db, self.ids, self.ideas)
        self.views = ViewComposer(self.campaigns, self.ideas, clock=clock)


class IdeaCreate(BaseModel):
    title: str
    description: str
    funding_goal: int
    legal_entity: str
    contact_info: str
    category: str
    business_registration: int = 0


class CampaignCreate(BaseModel):
    idea_id: int
    goal: int
    end_date: int = Field(..., ge=0)


class Created(BaseModel):
    id: int


def seed_data(services: Services) -> dict:
    if services.ideas.count() > 0:
        return {"status": "skipped", "reason": "data already exists"}

    now = services.views.clock()
    idea1 = services.ideas.create_idea(
        "Eco-Friendly Water Bottles",
        "Reusable bottles made from recycled materials",
        100_000,
        "EcoCorp LLC",
        "contact@ecocorp.example",
        "Environment",
        1,
    )
    idea2 = services.ideas.create_idea(
        "Indie Pixel Art Game",
        "A cozy RPG with retro pixel art",
        100_000,
        "IndieStudio Ltd",
        "hello@indiestudio.example",
        "Gaming",
        1,
    )
    services.campaigns.create_campaign(idea1, 100_000, now + 7 * 86_400)
    services.campaigns.create_campaign(idea2, 100_000, now - 5 * 86_400)
    return {"status": "seeded", "ideas": 2, "campaigns": 2}


def content_disposition(filename: str) -> str:
    # plain ascii fallback plus the RFC 5987 utf-8 form
    fallback = "".join(c if 32 <= ord(c) < 127 and c not in '"\\' else "_" for c in filename)
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


def get_services(request: Request) -> Services:
    return request.app.state.services


def create_app(db=None, clock: Callable[[], int] = now_secs,
               clock_ns: Optional[Callable[[], int]] = None, seed: bool = SEED_ON_STARTUP) -> FastAPI:

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "services", None) is None:
            app.state.services = Services(connect(DATABASE_URL, DATABASE_NAME), clock, clock_ns)
        if seed:
            logger.info("seed: %s", seed_data(app.state.services)["status"])
        yield

    app = FastAPI(title="FundVerse API", version="1.0.0", lifespan=lifespan)
    app.state.services = Services(db, clock, clock_ns) if db is not None else None

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(IdeaRejected)
    async def idea_rejected(request: Request, exc: IdeaRejected):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(DocumentRejected)
    async def document_rejected(request: Request, exc: DocumentRejected):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(CampaignError)
    async def campaign_error(request: Request, exc: CampaignError):
        return JSONResponse(status_code=400, content={"detail": exc.message, "code": exc.code})

    @app.get("/", tags=["health"])
    async def root():
        return {"status": "ok", "service": "FundVerse API"}

    @app.get("/test", tags=["health"])
    async def test_db(services: Services = Depends(get_services)):
        return {
            "ok": True,
            "backing": backing_name(services.db),
            "counts": {
                "idea": services.ideas.count(),
                "campaign": services.campaigns.count(),
                "document": services.documents.count(),
            },
        }

    @app.post("/ideas", response_model=Created, tags=["ideas"])
    async def create_idea(payload: IdeaCreate, services: Services = Depends(get_services)):
        return {"id": services.ideas.create_idea(**payload.model_dump())}

    @app.get("/ideas", response_model=List[Idea], tags=["ideas"])
    async def list_ideas(services: Services = Depends(get_services)):
        return services.ideas.list_ideas()

    @app.get("/ideas/{idea_id}", response_model=Idea, tags=["ideas"])
    async def get_idea_by_id(idea_id: int, services: Services = Depends(get_services)):
        idea = services.ideas.get_idea(idea_id)
        if idea is None:
            raise HTTPException(status_code=404, detail="Idea not found")
        return idea

    @app.post("/ideas/{idea_id}/documents", response_model=Created, tags=["documents"])
    async def upload_doc(idea_id: int, file: UploadFile = File(...), uploaded_at: int = Form(..., ge=0),
                         services: Services = Depends(get_services)):
        data = await file.read()
        doc_id = services.documents.upload_doc(
            idea_id,
            file.filename or "upload",
            file.content_type or "application/octet-stream",
            data,
            uploaded_at,
        )
        if doc_id is None:
            raise HTTPException(status_code=404, detail="Idea not found")
        return {"id": doc_id}

    @app.get("/documents/{doc_id}", tags=["documents"])
    async def get_doc(doc_id: int, services: Services = Depends(get_services)):
        doc = services.documents.get_doc(doc_id)
        if doc is None:
            raise HTTPException(status_code=404, detail="Document not found")
        return Response(
            content=doc.data,
            media_type=doc.content_type,
            headers={"Content-Disposition": content_disposition(doc.name)},
        )

    @app.get("/documents/{doc_id}/meta", response_model=DocumentMeta, tags=["documents"])
    async def get_doc_meta(doc_id: int, services: Services = Depends(get_services)):
        doc = services.documents.get_doc(doc_id)
        if doc is None:
            raise HTTPException(status_code=404, detail="Document not found")
        return DocumentMeta(
            id=doc.id,
            idea_id=doc.idea_id,
            name=doc.name,
            content_type=doc.content_type,
            size=len(doc.data),
            uploaded_at=doc.uploaded_at,
        )

    @app.post("/campaigns", response_model=Created, tags=["campaigns"])
    async def create_campaign(payload: CampaignCreate, services: Services = Depends(get_services)):
        return {"id": services.campaigns.create_campaign(payload.idea_id, payload.goal, payload.end_date)}

    @app.get("/campaigns", response_model=List[CampaignCard], tags=["campaigns"])
    async def get_campaign_cards(status: Optional[CampaignStatus] = None,
                                 services: Services = Depends(get_services)):
        if status is None:
            return services.views.get_campaign_cards()
        return services.views.get_campaign_cards_by_status(status)

    @app.get("/campaigns/{campaign_id}", response_model=CampaignWithIdea, tags=["campaigns"])
    async def get_campaign_with_idea(campaign_id: int, services: Services = Depends(get_services)):
        found = services.views.get_campaign_with_idea(campaign_id)
        if found is None:
            raise HTTPException(status_code=404, detail="Campaign not found")
        return found

    # Seed mock data endpoint
    @app.post("/seed", tags=["dev"])
    async def seed(services: Services = Depends(get_services)):
        return seed_data(services)

    return app


configure_logging()
app = create_app()
