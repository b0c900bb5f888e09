import pytest
from fastapi.testclient import TestClient

from config import MEMORY_URL
from database import IdAllocator, connect
from main import Services, create_app
from stores import CampaignStore, DocumentStore, IdeaStore
from views import ViewComposer

NOW = 1_700_000_000
DAY = 86_400


class FakeClock:
    def __init__(self, now: int = NOW):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def ns(self) -> int:
        return self.now * 1_000_000_000


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def db():
    return connect(MEMORY_URL, "test")


@pytest.fixture
def ids(db):
    return IdAllocator(db)


@pytest.fixture
def ideas(db, ids, clock):
    return IdeaStore(db, ids, clock_ns=clock.ns)


@pytest.fixture
def documents(db, ids, ideas):
    return DocumentStore(db, ids, ideas)


@pytest.fixture
def campaigns(db, ids, ideas):
    return CampaignStore(db, ids, ideas)


@pytest.fixture
def views(campaigns, ideas, clock):
    return ViewComposer(campaigns, ideas, clock=clock)


@pytest.fixture
def make_idea(ideas):
    def _make(title="A", funding_goal=100_000, **overrides):
        fields = dict(
            title=title,
            description="An idea worth funding",
            funding_goal=funding_goal,
            legal_entity="Acme LLC",
            contact_info="team@acme.example",
            category="Technology",
            business_registration=1,
        )
        fields.update(overrides)
        return ideas.create_idea(**fields)
    return _make


@pytest.fixture
def services(db, clock):
    return Services(db, clock=clock, clock_ns=clock.ns)


@pytest.fixture
def client(db, clock):
    app = create_app(db=db, clock=clock, clock_ns=clock.ns, seed=False)
    return TestClient(app)
