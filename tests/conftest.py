from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from legalai.config import Settings
from legalai.dependencies import build_services
from legalai.main import create_app
from legalai.services.credential_store import InMemoryCredentialStore
from legalai.services.document_store import InMemoryDocumentStore
from legalai.services.llm_service import AnalysisResult, LLMService
from legalai.services.notifier import Notifier
from legalai.errors import UpstreamFailure


class FakeClock:
    """Starts at the real current time so JWT expiry checks still pass."""

    def __init__(self, start=None):
        self.now = start or datetime.now(timezone.utc).replace(microsecond=0)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class RecordingNotifier(Notifier):
    def __init__(self, succeed=True):
        self.succeed = succeed
        self.sent = []

    async def send(self, email, template_kind, data):
        self.sent.append((email, template_kind, dict(data)))
        return self.succeed

    def last(self, template_kind):
        for email, kind, data in reversed(self.sent):
            if kind == template_kind:
                return data
        return None


class StubAnalyzer(LLMService):
    def __init__(self):
        super().__init__(gemini_key=None, groq_key=None, char_limit=3200)
        self.calls = []
        self.fail = False

    async def analyze(self, text):
        self.calls.append(text)
        if self.fail:
            raise UpstreamFailure("Document analysis failed. Please try again.")
        return AnalysisResult(
            summary="A one-year services agreement.",
            risks=["Unlimited liability for the customer"],
            key_points=["Term: 12 months"],
            raw="{}",
        )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def analyzer():
    return StubAnalyzer()


@pytest.fixture
def test_settings():
    return Settings(_env_file=None, JWT_SECRET="test-secret", EMAIL_ENABLED=False)


@pytest.fixture
def services(test_settings, clock, notifier, analyzer):
    return build_services(
        test_settings,
        clock=clock,
        credentials=InMemoryCredentialStore(),
        documents=InMemoryDocumentStore(),
        notifier=notifier,
        analyzer=analyzer,
    )


@pytest.fixture
def client(services):
    app = create_app(services, start_sweeper=False)
    with TestClient(app) as test_client:
        yield test_client
