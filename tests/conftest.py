"""Shared test fixtures."""

import random

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from quickroll.api.items import get_evaluator, get_roll_config
from quickroll.infra.db import get_db, make_engine, make_session_factory
from quickroll.domain.flags import normalize_flags
from quickroll.main import app
from quickroll.models.db_models import Base
from quickroll.models.item import ActorSnapshot, ItemSnapshot
from quickroll.models.roll import RollConfig
from quickroll.modules.dice.parser import FormulaEvaluator

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"


class ScriptedRandom(random.Random):
    """Random source that replays scripted die faces, then rolls 1s."""

    def __init__(self) -> None:
        super().__init__(0)
        self.faces: list[int] = []
        self.calls = 0

    def script(self, *faces: int) -> None:
        self.faces.extend(faces)

    def randint(self, a: int, b: int) -> int:
        self.calls += 1
        if not self.faces:
            return a
        value = self.faces.pop(0)
        assert a <= value <= b, f"scripted face {value} outside 1..{b}"
        return value


@pytest.fixture
def dice() -> ScriptedRandom:
    return ScriptedRandom()


@pytest.fixture
def evaluator(dice) -> FormulaEvaluator:
    return FormulaEvaluator(rng=dice)


@pytest.fixture
def roll_config() -> RollConfig:
    return RollConfig()


@pytest_asyncio.fixture
async def db_engine():
    engine = make_engine(TEST_DB_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine):
    factory = make_session_factory(db_engine)
    async with factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(db_engine, evaluator, roll_config):
    factory = make_session_factory(db_engine)

    async def _override_get_db():
        async with factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_evaluator] = lambda: evaluator
    app.dependency_overrides[get_roll_config] = lambda: roll_config
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


# --- Snapshot factories ---


@pytest.fixture
def make_actor():
    def _make(**overrides) -> ActorSnapshot:
        data = {
            "id": "actor1",
            "name": "Hero",
            "abilities": {"str": 3, "dex": 1, "con": 2, "int": 0, "wis": 1, "cha": -1},
            "proficiency": 2,
        }
        data.update(overrides)
        return ActorSnapshot.model_validate(data)

    return _make


@pytest.fixture
def make_item(make_actor):
    """Build an ItemSnapshot; flags are repaired like stored items unless given."""

    def _make(item_type: str = "weapon", flags=None, actor=None, **overrides) -> ItemSnapshot:
        data = {
            "id": "item1",
            "name": "Longsword",
            "item_type": item_type,
            "actor": actor or make_actor(),
        }
        if item_type == "weapon":
            data.update(
                action_type="mwak",
                proficient=True,
                damage_parts=[{"formula": "1d8 + @mod", "damage_type": "slashing"}],
            )
        data.update(overrides)
        if flags is not False:
            data["flags"] = normalize_flags(
                item_type, flags, len(data.get("damage_parts") or [])
            )
        return ItemSnapshot.model_validate(data)

    return _make
