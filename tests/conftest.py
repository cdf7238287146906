from datetime import datetime, timedelta, timezone
from typing import Any

import httpx
import pytest

from recipedraft.config import Config
from recipedraft.models import RecipeDraft
from recipedraft.store import DraftStore, MemoryBackend


CURRY = """NAME: Vegan Chickpea Curry
DESCRIPTION: A rich and creamy curry with chickpeas and coconut milk
CATEGORY: Main Course
CUISINE: Indian
INGREDIENTS: 2 cans chickpeas|1 can coconut milk|1 onion|2 tbsp curry powder
INSTRUCTIONS: Saute the onion|Stir in the curry powder|Add chickpeas and coconut milk|Simmer for 20 minutes
PREP_TIME: 10 minutes
COOK_TIME: 25 minutes
SERVINGS: 4
DIFFICULTY: Easy"""

CURRY_NUTRITION = '{"calories": 1800, "protein": 60, "carbs": 200, "fat": 90}'


def chat_response(content: str, status_code: int = 200) -> httpx.Response:
    return httpx.Response(
        status_code,
        json={"choices": [{"message": {"role": "assistant", "content": content}}]},
    )


class ScriptedApi:
    """Plays back replies in order: text, a prepared response or an exception."""

    def __init__(self, *replies: str | httpx.Response | Exception) -> None:
        self.replies = list(replies)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, httpx.Response):
            return reply
        return chat_response(reply)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=httpx.MockTransport(self),
            base_url="https://api.test/v1/",
        )


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        self.seconds = 0.0

    def __call__(self) -> datetime:
        return self.now

    def monotonic(self) -> float:
        return self.seconds

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)
        self.seconds += seconds


def make_config(**kwargs: Any) -> Config:
    return Config(
        _env_file=None,  # pyright: ignore[reportCallIssue]
        deepseek_api_key="test-key",
        **kwargs,
    )


@pytest.fixture
def config() -> Config:
    return make_config()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def backend(clock: FakeClock) -> MemoryBackend:
    return MemoryBackend(monotonic=clock.monotonic)


@pytest.fixture
def store(backend: MemoryBackend, clock: FakeClock) -> DraftStore:
    return DraftStore(backend, ttl_seconds=60 * 60 * 24, clock=clock)


@pytest.fixture
def curry() -> RecipeDraft:
    return RecipeDraft(
        name="Vegan Chickpea Curry",
        description="A rich and creamy curry",
        category="Main Course",
        cuisine="Indian",
        ingredients=["2 cans chickpeas", "1 can coconut milk"],
        instructions=["Saute", "Simmer"],
        servings="4",
        difficulty="Easy",
        dietary_preferences=["vegan"],
    )
