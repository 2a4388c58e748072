# tests/conftest.py — Shared test fixtures
import os
import hmac
import hashlib

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

# Use SQLite for tests
TEST_DB_URL = "sqlite+aiosqlite:///./test.db"
os.environ["DATABASE_URL"] = TEST_DB_URL
os.environ["JWT_SECRET_KEY"] = "test-secret-key-for-unit-tests-only-min-32-chars"
os.environ["ENVIRONMENT"] = "test"
os.environ["EMAIL_PROVIDER"] = "log"
os.environ["RAZORPAY_KEY_ID"] = ""
os.environ["RAZORPAY_KEY_SECRET"] = "test-key-secret"
os.environ["RAZORPAY_WEBHOOK_SECRET"] = "test-webhook-secret"
os.environ["NOMINATION_RATE_LIMIT"] = "1000"
os.environ["AI_POLISH_RATE_LIMIT"] = "1000"
# AI polish runs in stub mode
for _key in ("ANTHROPIC_API_KEY", "OPENAI_API_KEY", "GROQ_API_KEY", "LLM_PROVIDER"):
    os.environ.pop(_key, None)

from models import Base, User, UserRole, UserStatus, ProfileTier  # noqa: E402
from auth import AuthService, _login_attempts  # noqa: E402
from database import get_db_session  # noqa: E402
from rate_limit import LIMITERS  # noqa: E402
from main import app  # noqa: E402

KEY_SECRET = os.environ["RAZORPAY_KEY_SECRET"]
WEBHOOK_SECRET = os.environ["RAZORPAY_WEBHOOK_SECRET"]


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    engine = create_async_engine(TEST_DB_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine):
    session_factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client(db_engine):
    """HTTP test client with overridden DB dependency"""
    session_factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
    _login_attempts.clear()
    for limiter in LIMITERS:
        limiter.reset()


async def _make_user(db_session, email, password, role, full_name, tier=None, status=UserStatus.ACTIVE):
    user = User(
        email=email,
        full_name=full_name,
        password_hash=AuthService.hash_password(password),
        role=role,
        status=status,
        tier=tier,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest_asyncio.fixture
async def visitor_user(db_session):
    return await _make_user(db_session, "visitor@iconsherald.dev", "VisitorPass123!", UserRole.VISITOR, "Vera Visitor")


@pytest_asyncio.fixture
async def applicant_user(db_session):
    """Approved nominee with the emerging tier"""
    return await _make_user(
        db_session, "nominee@iconsherald.dev", "NomineePass123!", UserRole.APPLICANT,
        "Asha Rao", tier=ProfileTier.EMERGING,
    )


@pytest_asyncio.fixture
async def admin_user(db_session):
    return await _make_user(db_session, "admin@iconsherald.dev", "AdminPassword123!", UserRole.ADMIN, "Admin User")


@pytest_asyncio.fixture
async def super_admin(db_session):
    return await _make_user(db_session, "superadmin@iconsherald.dev", "SuperAdmin123!!", UserRole.SUPER_ADMIN, "Super Admin")


def get_auth_headers(user: User) -> dict:
    """Generate auth headers for a user"""
    token = AuthService.create_access_token(AuthService.token_payload_for(user))
    return {"Authorization": f"Bearer {token}"}


def sign(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def emerging_content(**overrides) -> dict:
    """A fully filled emerging-tier draft"""
    content = {
        "name": "Asha Rao",
        "tagline": "Building clean water networks",
        "location": "Pune, India",
        "currentRole": "Founder, Jal Setu",
        "heroImage": "https://cdn.example.com/asha.jpg",
        "bio": {"original": "Asha designs low-cost filtration for rural schools.", "ai_polished": None},
        "futureVision": {"original": "Safe water in every district by 2030."},
        "achievements": [
            {"id": "achievements-1", "order": 0, "title": "Young Innovator Award", "year": "2024", "isVisible": True},
        ],
        "links": [
            {"id": "links-1", "order": 0, "label": "Website", "url": "https://jalsetu.example.org", "isVisible": True},
        ],
        "milestones": [
            {"id": "milestones-1", "order": 0, "title": "First school pilot", "year": "2022", "isVisible": True},
        ],
    }
    content.update(overrides)
    return content


@pytest.fixture
def complete_emerging_content():
    return emerging_content()
