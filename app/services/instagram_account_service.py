import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import select
from starlette.concurrency import run_in_threadpool

from ..core.database import get_session
from ..models import InstagramAccount
from ..schemas.instagram import InstagramConnectionStatus, InstagramProfile, LongLivedToken
from .instagram_client import InstagramClient

logger = logging.getLogger(__name__)


class InstagramAccountService:
    """
    Links an Instagram account to one application user.

    ``seed_account`` upgrades the short-lived token, fetches the profile and
    stores the linkage. Any failure raises and nothing is written.

    The stored ``ig_user_id`` is the id returned by the Graph /me profile, not
    the ``provider_user_id`` passed in from the token response. The two are
    normally equal. When they differ a warning is logged and the profile id is
    kept, since that is the id later Graph calls with the stored token resolve to.
    """

    def __init__(self, owner_id: str, client: InstagramClient, session_factory=get_session):
        self.owner_id = owner_id
        self.client = client
        self._session_factory = session_factory

    async def seed_account(self, provider_user_id: str, short_lived_token: str) -> InstagramAccount:
        long_lived = await self.client.exchange_long_lived_token(short_lived_token)
        profile = await self.client.get_profile(long_lived.access_token)

        if profile.id != provider_user_id:
            logger.warning(
                "[INSTAGRAM] Profile id %s differs from token user id %s for owner=%s",
                profile.id,
                provider_user_id,
                self.owner_id,
            )

        account = await run_in_threadpool(self._upsert, profile, long_lived)
        logger.info(
            "[INSTAGRAM] Linked ig_user_id=%s to owner=%s",
            account.ig_user_id,
            self.owner_id,
        )
        return account

    def _upsert(self, profile: InstagramProfile, token: LongLivedToken) -> InstagramAccount:
        now = datetime.now(timezone.utc)
        expires_at = now + timedelta(seconds=token.expires_in) if token.expires_in else None

        with self._session_factory() as session:
            account = session.execute(
                select(InstagramAccount).where(InstagramAccount.owner_id == self.owner_id)
            ).scalar_one_or_none()
            if account is None:
                account = InstagramAccount(owner_id=self.owner_id, connected_at=now)
                session.add(account)
            account.ig_user_id = profile.id
            account.username = profile.username
            account.account_type = profile.account_type
            account.media_count = profile.media_count
            account.access_token = token.access_token
            account.token_expires_at = expires_at
            account.updated_at = now
            session.flush()
            return account


def _load_account(owner_id: str, session_factory=get_session) -> Optional[InstagramAccount]:
    with session_factory() as session:
        return session.execute(
            select(InstagramAccount).where(InstagramAccount.owner_id == owner_id)
        ).scalar_one_or_none()


async def get_connection_status(owner_id: str, session_factory=get_session) -> InstagramConnectionStatus:
    account = await run_in_threadpool(_load_account, owner_id, session_factory)
    if account is None:
        return InstagramConnectionStatus(connected=False)
    return InstagramConnectionStatus(
        connected=True,
        username=account.username,
        account_type=account.account_type,
        media_count=account.media_count,
        token_expires_at=account.token_expires_at,
    )
