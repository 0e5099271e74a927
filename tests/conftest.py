import os

# Settings are read at import time, so the environment must be ready first
os.environ.setdefault("SECRET", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("STORAGE_BACKEND", "inline")

from typing import Any, AsyncGenerator  # noqa: E402

import pytest  # noqa: E402
from fastapi import Depends, FastAPI  # noqa: E402
from fastapi_users.db import SQLAlchemyUserDatabase  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from messaging.db import enable_sqlite_foreign_keys, get_db_session, get_user_db  # noqa: E402
from messaging.main import app  # noqa: E402
from messaging.models import User, metadata  # noqa: E402
from messaging.repositories.attachment_repository import AttachmentRepository  # noqa: E402
from messaging.repositories.conversation_repository import ConversationRepository  # noqa: E402
from messaging.repositories.message_repository import MessageRepository  # noqa: E402
from messaging.repositories.participant_repository import ParticipantRepository  # noqa: E402
from messaging.repositories.user_repository import UserRepository  # noqa: E402
from messaging.services.attachment_service import AttachmentService  # noqa: E402
from messaging.services.conversation_service import ConversationService  # noqa: E402
from messaging.services.membership_service import MembershipService  # noqa: E402
from messaging.services.message_service import MessageService  # noqa: E402
from messaging.services.read_state_service import ReadStateService  # noqa: E402
from messaging.storage import get_storage_gateway  # noqa: E402
from test_helpers import RecordingStorage, create_test_user  # noqa: E402

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture(scope="function")
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    # One shared connection, so every session sees the same in-memory database
    engine = create_async_engine(TEST_DATABASE_URL, poolclass=StaticPool)
    enable_sqlite_foreign_keys(engine)
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
    await engine.dispose()


@pytest.fixture(scope="function")
def db_test_session_manager(test_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, expire_on_commit=False)


@pytest.fixture(scope="function")
async def db_session(
    db_test_session_manager: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with db_test_session_manager() as session:
        yield session


@pytest.fixture(scope="function")
def storage() -> RecordingStorage:
    return RecordingStorage()


@pytest.fixture(scope="function")
async def users(db_session: AsyncSession) -> list[User]:
    """Three committed users: alice, bob and carol."""
    created = [
        create_test_user(username=name, email=f"{name}@example.com")
        for name in ("alice", "bob", "carol")
    ]
    db_session.add_all(created)
    await db_session.commit()
    return created


@pytest.fixture(scope="function")
def conversation_service(db_session: AsyncSession) -> ConversationService:
    return ConversationService(
        conversation_repository=ConversationRepository(db_session),
        participant_repository=ParticipantRepository(db_session),
        user_repository=UserRepository(db_session),
    )


@pytest.fixture(scope="function")
def message_service(db_session: AsyncSession, storage: RecordingStorage) -> MessageService:
    return MessageService(
        message_repository=MessageRepository(db_session),
        conversation_repository=ConversationRepository(db_session),
        participant_repository=ParticipantRepository(db_session),
        storage=storage,
    )


@pytest.fixture(scope="function")
def attachment_service(
    db_session: AsyncSession, storage: RecordingStorage
) -> AttachmentService:
    return AttachmentService(
        message_repository=MessageRepository(db_session),
        attachment_repository=AttachmentRepository(db_session),
        conversation_repository=ConversationRepository(db_session),
        participant_repository=ParticipantRepository(db_session),
        storage=storage,
    )


@pytest.fixture(scope="function")
def read_state_service(db_session: AsyncSession) -> ReadStateService:
    return ReadStateService(
        participant_repository=ParticipantRepository(db_session),
        conversation_repository=ConversationRepository(db_session),
    )


@pytest.fixture(scope="function")
def membership_service(
    db_session: AsyncSession, storage: RecordingStorage
) -> MembershipService:
    return MembershipService(
        participant_repository=ParticipantRepository(db_session),
        conversation_repository=ConversationRepository(db_session),
        attachment_repository=AttachmentRepository(db_session),
        storage=storage,
    )


@pytest.fixture(scope="function")
def test_app(
    db_test_session_manager: async_sessionmaker[AsyncSession],
    storage: RecordingStorage,
) -> FastAPI:
    async def override_get_db_session() -> AsyncGenerator[AsyncSession, None]:
        async with db_test_session_manager() as session:
            yield session

    # Depends on the original name so FastAPI hands in the overridden session
    async def override_get_user_db(
        session: AsyncSession = Depends(get_db_session),
    ) -> AsyncGenerator[SQLAlchemyUserDatabase[User, Any], None]:
        yield SQLAlchemyUserDatabase(session, User)

    app.dependency_overrides[get_db_session] = override_get_db_session
    app.dependency_overrides[get_user_db] = override_get_user_db
    app.dependency_overrides[get_storage_gateway] = lambda: storage
    yield app
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def test_client(test_app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=test_app),
        base_url="http://test",
    ) as client:
        yield client
