from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, Optional, Set

import pytest

# Load dotenv files early so test settings can read them
try:  # pragma: no cover
    from dotenv import load_dotenv

    TEST_ROOT = Path(__file__).resolve().parent
    # Load test/.env first, then fallback to test/.env.example for defaults
    load_dotenv(TEST_ROOT / ".env", override=False)
    load_dotenv(TEST_ROOT / ".env.example", override=False)
except Exception:
    pass

# Import test settings after dotenv is loaded
from test.settings import test_settings

from session_continuity.core.config import Settings
from session_continuity.core.database import create_all, create_engine, create_sessionmaker
from session_continuity.core.models.domain import SessionRole
from session_continuity.service import build_continuity

T0 = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Deterministic clock; tests move time explicitly."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now


class FakeArtifactValidator:
    """Artifact validator backed by in-memory sets instead of the filesystem and git."""

    def __init__(self, paths: Optional[Set[str]] = None, branches: Optional[Dict[str, Set[str]]] = None) -> None:
        self.paths: Set[str] = set(paths or ())
        self.branches: Dict[str, Set[str]] = {k: set(v) for k, v in (branches or {}).items()}
        self.path_checks = 0

    async def path_exists(self, path: str) -> bool:
        self.path_checks += 1
        return path in self.paths

    async def branch_exists(self, repo_dir: str, branch: str) -> Optional[bool]:
        if repo_dir not in self.branches:
            return None
        return branch in self.branches[repo_dir]


@pytest.fixture(scope="session")
def test_config():
    """Fixture providing test configuration from Pydantic settings model.

    Returns:
        TestSettings: Test configuration with all environment variables loaded
    """
    return test_settings


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def db_url(tmp_path: Path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'continuity.db'}"


@pytest.fixture
def settings(db_url: str) -> Settings:
    """Engine settings isolated from the developer's environment."""
    return Settings(_env_file=None, database_url=db_url)


@pytest.fixture
async def engine(db_url: str):
    """File-backed SQLite engine with the continuity schema created."""
    engine = create_engine(db_url)
    await create_all(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_sessionmaker(engine)


@pytest.fixture
def validator() -> FakeArtifactValidator:
    return FakeArtifactValidator()


@pytest.fixture
def service(session_factory, settings, clock, validator):
    """Fully wired service on the per-test database."""
    return build_continuity(
        session_factory=session_factory,
        settings=settings,
        clock=clock,
        artifact_validator=validator,
    )


@pytest.fixture
async def session(service):
    """A freshly registered primary session for project ``proj``."""
    return await service.sessions.register("proj", SessionRole.primary, session_id="proj-PS-000001")
