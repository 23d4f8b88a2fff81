"""Pytest configuration for backend tests."""
import sys
import os
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Optional, Union

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

# Settings are read at import time; never point tests at a real database or the real API
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite://")
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["OPENAI_API_KEY"] = ""

from tokenestate.database import Base  # noqa: E402
import tokenestate.models  # noqa: E402,F401
from tokenestate.models import User, Property, Investment  # noqa: E402
from tokenestate.services.llm_client import InferenceClient, InferenceError  # noqa: E402


class FakeInferenceClient(InferenceClient):
    """
    Scripted stand-in for the OpenAI-backed client.

    json_replies maps a call label ("analyze_profile", "score_properties") to the
    decoded JSON object to return, or to an exception to raise. Labels without a
    scripted reply raise InferenceError, as an unavailable service would.
    """

    def __init__(
        self,
        json_replies: Optional[Dict[str, Union[Dict[str, Any], Exception]]] = None,
        text_reply: Union[str, Exception, None] = None,
    ):
        super().__init__(api_key=None)
        self.json_replies = dict(json_replies or {})
        self.text_reply = text_reply
        self.calls: list[tuple[str, str]] = []

    def labels(self) -> list[str]:
        return [label for label, _ in self.calls]

    def complete_json(self, label, system_prompt, user_prompt, temperature):
        self.calls.append((label, user_prompt))
        reply = self.json_replies.get(label)
        if isinstance(reply, Exception):
            raise reply
        if reply is None:
            raise InferenceError(f"no scripted reply for {label}")
        return reply

    def complete_text(self, label, system_prompt, user_prompt, temperature):
        self.calls.append((label, user_prompt))
        if isinstance(self.text_reply, Exception):
            raise self.text_reply
        if self.text_reply is None:
            raise InferenceError(f"no scripted reply for {label}")
        return self.text_reply


@pytest.fixture(scope="session")
def engine():
    """
    Create a test database engine.

    Defaults to a shared in-memory sqlite database; set TEST_DATABASE_URL to
    run against Postgres instead.
    """
    connect_args = {"check_same_thread": False} if TEST_DATABASE_URL.startswith("sqlite") else {}
    test_engine = create_engine(
        TEST_DATABASE_URL,
        connect_args=connect_args,
        poolclass=StaticPool if TEST_DATABASE_URL.startswith("sqlite") else None,
        echo=False,
    )

    if not Base.metadata.tables:
        raise RuntimeError(
            "No tables registered in Base.metadata. "
            "Did you import tokenestate.models? All model classes must be imported before create_all()."
        )

    Base.metadata.create_all(bind=test_engine)

    yield test_engine

    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture(scope="function")
def db(engine) -> Session:
    """
    Create a database session for each test.

    Uses a transaction that is rolled back after each test for isolation;
    commits inside a test only release a savepoint.
    """
    connection = engine.connect()
    transaction = connection.begin()

    SessionLocal = sessionmaker(
        bind=connection,
        autocommit=False,
        autoflush=False,
        join_transaction_mode="create_savepoint",
    )
    session = SessionLocal()

    yield session

    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def make_user(db: Session):
    """Factory: create and flush a User."""
    counter = {"n": 0}

    def _make(**overrides) -> User:
        counter["n"] += 1
        values = {
            "username": f"investor_{counter['n']}",
            "email": f"investor_{counter['n']}@example.com",
            "kyc_status": "verified",
        }
        values.update(overrides)
        user = User(**values)
        db.add(user)
        db.flush()
        return user

    return _make


@pytest.fixture
def make_property(db: Session):
    """Factory: create and flush a Property. Defaults score no bonuses against the default profile."""
    counter = {"n": 0}

    def _make(**overrides) -> Property:
        counter["n"] += 1
        values = {
            "title": f"Property {counter['n']}",
            "description": "A tokenized property",
            "location": "Rural Plains",
            "property_type": "Industrial",
            "total_value": Decimal("1000000"),
            "total_tokens": 1000,
            "available_tokens": 100,
            "expected_roi": Decimal("20.0"),
            "min_investment": Decimal("100000"),
            "image_url": "https://example.com/property.jpg",
            "is_active": True,
        }
        values.update(overrides)
        prop = Property(**values)
        db.add(prop)
        db.flush()
        return prop

    return _make


@pytest.fixture
def make_investment(db: Session):
    """Factory: create and flush an Investment for (user, property)."""

    def _make(user: User, prop: Property, **overrides) -> Investment:
        values = {
            "user_id": user.id,
            "property_id": prop.id,
            "tokens_owned": 10,
            "investment_amount": Decimal("10000"),
            "current_value": Decimal("10500"),
        }
        values.update(overrides)
        investment = Investment(**values)
        db.add(investment)
        db.flush()
        return investment

    return _make
