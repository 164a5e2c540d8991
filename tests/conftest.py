import itertools
import os

os.environ.setdefault("ENVIRONMENT", "testing")
os.environ["DATABASE_URL_OVERRIDE"] = "sqlite+aiosqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SEED_SPECIALTIES_ON_STARTUP"] = "false"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["EXTRACTION_API_KEY"] = "test-extraction-key"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.pool import StaticPool

from db.database import build_engine, build_session_factory, create_tables, get_db
from main import app
from models.specialty import Specialty
from models.user import User, UserRole
from schemas.mdt_schemas import MDTCreate, MedicationIn, PatientProfileCreate
from services.mdt_service import mdt_service
from services.specialty_service import specialty_service
from services.user_service import user_service
from utils.security import create_access_token, hash_password

PASSWORD = "Passw0rd!"
PASSWORD_HASH = hash_password(PASSWORD)


@pytest_asyncio.fixture
async def engine():
    test_engine = build_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    await create_tables(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    factory = build_session_factory(engine)
    async with factory() as session:
        await specialty_service.seed_specialties(session)
    return factory


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def specialty_ids(db):
    result = await db.execute(select(Specialty.name, Specialty.id))
    return dict(result.all())


@pytest.fixture
def make_user(db):
    counter = itertools.count(1)

    async def _make(role=UserRole.LOCAL, specialties=(), first_name=None, email=None):
        n = next(counter)
        rows = []
        if specialties:
            result = await db.execute(
                select(Specialty).where(Specialty.name.in_(list(specialties)))
            )
            rows = list(result.scalars().all())

        user = User(
            first_name=first_name or f"User{n:02d}",
            last_name="Tester",
            email=email or f"user{n}@clinic.org",
            hashed_password=PASSWORD_HASH,
            role=role,
            specialties=rows,
        )
        if role == UserRole.EXTERNAL:
            user.referral_code = f"REF{n:05d}"
            user.professional_registration_number = f"REG-{n}"
        else:
            user.hospital = "General Hospital"

        db.add(user)
        await db.commit()
        return await user_service.get_by_id(db, user.id)

    return _make


def build_mdt_payload(specialty_ids=(), member_ids=(), name="Chest pain case"):
    return MDTCreate(
        name=name,
        patient_profile=PatientProfileCreate(
            age=54,
            gender="MALE",
            unique_id="PAT-001",
            medical_history="Hypertension",
            case_summary="Recurrent chest pain on exertion",
            medications=[
                MedicationIn(name="Aspirin", dosage="75mg"),
                MedicationIn(name="Atorvastatin", dosage="20mg"),
            ],
        ),
        local_doctor_ids=list(member_ids),
        required_specialty_ids=list(specialty_ids),
    )


@pytest.fixture
def make_mdt(db, specialty_ids):
    async def _make(creator, specialties=(), members=(), name="Chest pain case"):
        payload = build_mdt_payload(
            [specialty_ids[s] for s in specialties],
            [member.id for member in members],
            name=name,
        )
        return await mdt_service.create_mdt(db, creator, payload)

    return _make


def auth_headers(user):
    token = create_access_token({"sub": user.id, "role": user.role.value})
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
