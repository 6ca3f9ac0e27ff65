"""Tests for the Application root: wiring, user switching and booking time."""

import pytest

from activity_tracker.app import Application
from activity_tracker.models import Bucket
from activity_tracker.storage.memory import MemoryBackend


@pytest.fixture
async def app(tmp_path):
    application = await Application.create(
        "ana", db_path=str(tmp_path / "app.db"), backend=MemoryBackend()
    )
    yield application
    await application.close()


def _work(activities):
    return next(a for a in activities if a.title == "Trabajo")


class TestApplication:
    @pytest.mark.asyncio
    async def test_creates_and_activates_user(self, app):
        assert app.users.user_exists("ana")
        assert await app.users.current_user() == "ana"
        assert app.data.username == "ana"

    @pytest.mark.asyncio
    async def test_resumes_last_user(self, tmp_path):
        db_path = str(tmp_path / "resume.db")
        first = await Application.create("luis", db_path=db_path, backend=MemoryBackend())
        await first.close()
        second = await Application.create(db_path=db_path, backend=MemoryBackend())
        try:
            assert second.data.username == "luis"
        finally:
            await second.close()

    @pytest.mark.asyncio
    async def test_add_time_books_note_and_session(self, app):
        before = _work(await app.data.get_data()).timeframe(Bucket.DAY).current
        assert await app.add_time("Trabajo", 2, Bucket.DAY, "informe") is True

        frame = _work(await app.data.get_data()).timeframe(Bucket.DAY)
        assert frame.current == before + 2
        assert [n.text for n in frame.notes] == ["informe"]
        sessions = await app.data.get_time_sessions(activity="Trabajo")
        assert [(s.hours, s.note) for s in sessions] == [(2, "informe")]

    @pytest.mark.asyncio
    async def test_add_time_rejects_non_positive(self, app):
        assert await app.add_time("Trabajo", 0) is False
        assert await app.data.get_time_sessions() == []

    @pytest.mark.asyncio
    async def test_stop_timer_books_hours(self, app):
        await app.timers.start("Trabajo")
        hours = await app.stop_timer("Trabajo", Bucket.DAY, "focus")
        assert hours is not None and hours >= 0
        assert not app.timers.has_timer("Trabajo")
        sessions = await app.data.get_time_sessions()
        assert sessions[-1].activity == "Trabajo"
        assert sessions[-1].note == "focus"

    @pytest.mark.asyncio
    async def test_stop_without_timer(self, app):
        assert await app.stop_timer("Trabajo") is None
        assert await app.data.get_time_sessions() == []

    @pytest.mark.asyncio
    async def test_switch_user(self, app):
        await app.add_time("Trabajo", 1)
        await app.switch_user("luis")
        assert app.data.username == "luis"
        assert await app.users.recent_users() == ["luis", "ana"]
        assert await app.data.get_time_sessions() == []
