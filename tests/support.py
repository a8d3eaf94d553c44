import tempfile
import unittest
import uuid
from datetime import date
from typing import Optional

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import drift.models  # noqa: F401  register tables
from drift.db.session import Base
from drift.models import Profile, TravelStop
from drift.models.profile import DEFAULT_NOTIFICATION_PREFS
from drift.services.notifications import NotificationDispatcher


_AUTO = object()

MONTEREY = (36.5, -121.9)
CARMEL = (36.6, -121.8)
NEW_YORK = (40.7, -74.0)


def create_test_engine(path: str):
    """File-backed SQLite engine whose transactions take the write lock up front."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{path}", connect_args={"timeout": 30})

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


class DatabaseTestCase(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.tmpdir = tempfile.TemporaryDirectory()
        self.engine = create_test_engine(f"{self.tmpdir.name}/drift.sqlite3")
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        self.pushes = []
        self.dispatcher = NotificationDispatcher(self.session_factory, sender=self.record_push)
        self.db = self.session_factory()

    async def asyncTearDown(self) -> None:
        await self.db.close()
        await self.engine.dispose()
        self.tmpdir.cleanup()

    def record_push(self, fcm_token, title, body, data):
        self.pushes.append({"token": fcm_token, "title": title, "body": body, "data": data})
        return "projects/drift-test/messages/1"

    def pushes_to(self, profile: Profile):
        return [p for p in self.pushes if p["token"] == profile.fcm_token]

    async def make_profile(
        self,
        name: str = "Traveler",
        location: Optional[tuple] = None,
        looking_for: str = "both",
        onboarded: bool = True,
        birthdate: Optional[date] = date(1992, 5, 1),
        fcm_token=_AUTO,
        **fields,
    ) -> Profile:
        lat, lon = location if location else (None, None)
        profile = Profile(
            id=uuid.uuid4(),
            name=name,
            latitude=lat,
            longitude=lon,
            looking_for=looking_for,
            onboarding_completed=onboarded,
            birthdate=birthdate,
            fcm_token=f"token-{uuid.uuid4().hex[:8]}" if fcm_token is _AUTO else fcm_token,
            notification_prefs=dict(DEFAULT_NOTIFICATION_PREFS),
            **fields,
        )
        self.db.add(profile)
        await self.db.commit()
        return profile

    async def add_stop(self, profile: Profile, location: Optional[tuple], name: str = "Stop") -> TravelStop:
        lat, lon = location if location else (None, None)
        stop = TravelStop(
            user_id=profile.id,
            location=name,
            latitude=lat,
            longitude=lon,
            start_date=date(2026, 6, 1),
            end_date=date(2026, 6, 10),
        )
        self.db.add(stop)
        await self.db.commit()
        return stop
