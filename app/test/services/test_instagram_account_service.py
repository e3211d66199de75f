import pytest
from contextlib import contextmanager
from unittest.mock import AsyncMock, MagicMock
from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from ...core.database import Base
from ...models import InstagramAccount
from ...schemas.instagram import InstagramProfile, LongLivedToken
from ...services.instagram_account_service import InstagramAccountService, get_connection_status
from ...utils.errors import InstagramGraphError


@pytest.fixture
def session_factory():
    """In-memory database shared across threads for the duration of one test"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)

    @contextmanager
    def factory():
        session = SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    yield factory
    engine.dispose()


@pytest.fixture
def mock_client():
    client = MagicMock()
    client.exchange_long_lived_token = AsyncMock(
        return_value=LongLivedToken(access_token="IGQVJ-long", token_type="bearer", expires_in=5184000)
    )
    client.get_profile = AsyncMock(
        return_value=InstagramProfile(id="17841400000", username="chess_club", account_type="PERSONAL", media_count=12)
    )
    return client


def fetch_accounts(session_factory):
    with session_factory() as session:
        return session.execute(select(InstagramAccount)).scalars().all()


class TestSeedAccount:

    @pytest.mark.asyncio
    async def test_seed_account_persists_linkage(self, session_factory, mock_client):
        service = InstagramAccountService("user-1", mock_client, session_factory=session_factory)

        account = await service.seed_account("17841400000", "IGQVJ-short")

        mock_client.exchange_long_lived_token.assert_awaited_once_with("IGQVJ-short")
        mock_client.get_profile.assert_awaited_once_with("IGQVJ-long")
        assert account.owner_id == "user-1"
        assert account.ig_user_id == "17841400000"
        assert account.username == "chess_club"
        assert account.access_token == "IGQVJ-long"
        assert account.token_expires_at is not None

        rows = fetch_accounts(session_factory)
        assert len(rows) == 1
        assert rows[0].media_count == 12

    @pytest.mark.asyncio
    async def test_reconnect_replaces_previous_linkage(self, session_factory, mock_client):
        service = InstagramAccountService("user-1", mock_client, session_factory=session_factory)
        await service.seed_account("17841400000", "IGQVJ-short")

        mock_client.get_profile.return_value = InstagramProfile(
            id="17841499999", username="chess_club_new", account_type="BUSINESS", media_count=3
        )
        await service.seed_account("17841499999", "IGQVJ-short-2")

        rows = fetch_accounts(session_factory)
        assert len(rows) == 1
        assert rows[0].ig_user_id == "17841499999"
        assert rows[0].username == "chess_club_new"

    @pytest.mark.asyncio
    async def test_separate_owners_get_separate_rows(self, session_factory, mock_client):
        await InstagramAccountService("user-1", mock_client, session_factory=session_factory).seed_account("1", "t")
        await InstagramAccountService("user-2", mock_client, session_factory=session_factory).seed_account("1", "t")

        owners = sorted(row.owner_id for row in fetch_accounts(session_factory))
        assert owners == ["user-1", "user-2"]

    @pytest.mark.asyncio
    async def test_token_without_expiry(self, session_factory, mock_client):
        mock_client.exchange_long_lived_token.return_value = LongLivedToken(access_token="IGQVJ-long")
        service = InstagramAccountService("user-1", mock_client, session_factory=session_factory)

        account = await service.seed_account("17841400000", "IGQVJ-short")

        assert account.token_expires_at is None

    @pytest.mark.asyncio
    async def test_graph_failure_writes_nothing(self, session_factory, mock_client):
        mock_client.get_profile.side_effect = InstagramGraphError("Instagram request failed: Session expired")
        service = InstagramAccountService("user-1", mock_client, session_factory=session_factory)

        with pytest.raises(InstagramGraphError):
            await service.seed_account("17841400000", "IGQVJ-short")

        assert fetch_accounts(session_factory) == []

    @pytest.mark.asyncio
    async def test_profile_id_is_stored_when_token_user_id_differs(self, session_factory, mock_client, caplog):
        service = InstagramAccountService("user-1", mock_client, session_factory=session_factory)

        account = await service.seed_account("999", "IGQVJ-short")

        assert account.ig_user_id == "17841400000"
        assert fetch_accounts(session_factory)[0].ig_user_id == "17841400000"
        assert "differs from token user id 999" in caplog.text


class TestConnectionStatus:

    @pytest.mark.asyncio
    async def test_status_not_connected(self, session_factory):
        result = await get_connection_status("user-1", session_factory=session_factory)

        assert result.connected is False
        assert result.username is None

    @pytest.mark.asyncio
    async def test_status_connected(self, session_factory, mock_client):
        await InstagramAccountService("user-1", mock_client, session_factory=session_factory).seed_account(
            "17841400000", "IGQVJ-short"
        )

        result = await get_connection_status("user-1", session_factory=session_factory)

        assert result.connected is True
        assert result.username == "chess_club"
        assert result.account_type == "PERSONAL"
        assert result.media_count == 12
