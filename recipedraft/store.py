from datetime import datetime, timezone
import logging
import time
from typing import Callable, Protocol
import uuid

from pydantic import ValidationError
import redis
import redis.asyncio

from recipedraft.config import Config
from recipedraft.errors import DraftNotFound, StoreUnavailable
from recipedraft.models import RecipeDraft


logger = logging.getLogger(__name__)


KEY_PREFIX = "recipe:draft:"


def draft_key(draft_id: str) -> str:
    return f"{KEY_PREFIX}{draft_id}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Backend(Protocol):
    async def get(self, key: str) -> bytes | str | None:
        ...

    async def set(self, key: str, value: str, *, ex: int | None = None) -> object:
        ...

    async def delete(self, key: str) -> object:
        ...


class MemoryBackend:
    """In process key value store with per key expiry.

    Expired keys are removed lazily, on read or during a `_gc` sweep.
    """

    def __init__(self, *, monotonic: Callable[[], float] | None = None) -> None:
        self._monotonic = time.monotonic if monotonic is None else monotonic
        self._data: dict[str, tuple[str, float | None]] = {}

    def _gc(self) -> None:
        now = self._monotonic()
        expired = [
            k
            for k, (_, expires) in self._data.items()
            if expires is not None and expires <= now
        ]
        for k in expired:
            del self._data[k]

    async def get(self, key: str) -> str | None:
        self._gc()
        item = self._data.get(key)
        return None if item is None else item[0]

    async def set(self, key: str, value: str, *, ex: int | None = None) -> bool:
        expires = None if ex is None else self._monotonic() + ex
        self._data[key] = (value, expires)
        return True

    async def delete(self, key: str) -> int:
        return 1 if self._data.pop(key, None) is not None else 0

    def __len__(self) -> int:
        self._gc()
        return len(self._data)


def redis_backend(config: Config) -> redis.asyncio.Redis:
    return redis.asyncio.Redis.from_url(config.redis_url, decode_responses=True)


class DraftStore:
    """Drafts live under `recipe:draft:<id>` and expire `ttl_seconds` after
    their last write.

    Writes always store the whole draft. Two callers updating the same draft
    race, and the later write wins.
    """

    def __init__(
        self,
        backend: Backend,
        *,
        ttl_seconds: int = 60 * 60 * 24,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.backend = backend
        self.ttl_seconds = ttl_seconds
        self.clock = utcnow if clock is None else clock

    @classmethod
    def from_config(cls, config: Config, *, backend: Backend | None = None) -> "DraftStore":
        backend = redis_backend(config) if backend is None else backend
        return cls(backend, ttl_seconds=config.draft_ttl_seconds)

    async def _write(self, draft: RecipeDraft) -> None:
        try:
            value = draft.model_dump_json()
            await self.backend.set(draft_key(draft.id), value, ex=self.ttl_seconds)
        except (redis.RedisError, ValueError, TypeError) as e:
            raise StoreUnavailable(f"Failed to write draft {draft.id}: {e}") from e

    async def save(self, draft: RecipeDraft) -> str:
        """Store `draft` under a new id.

        The id and timestamps are set on `draft` only once the write succeeded.
        """
        draft_id = uuid.uuid4().hex
        now = self.clock()
        stored = draft.model_copy(
            update={"id": draft_id, "created_at": now, "updated_at": now}
        )
        await self._write(stored)
        draft.id = draft_id
        draft.created_at = draft.updated_at = now
        logger.info("Saved draft %s", draft_id)
        return draft_id

    async def get(self, draft_id: str) -> RecipeDraft:
        try:
            raw = await self.backend.get(draft_key(draft_id))
        except redis.RedisError as e:
            raise StoreUnavailable(f"Failed to read draft {draft_id}: {e}") from e
        if raw is None:
            raise DraftNotFound(f"Draft {draft_id} not found or expired.")
        try:
            return RecipeDraft.model_validate_json(raw)
        except ValidationError as e:
            raise StoreUnavailable(f"Stored draft {draft_id} is corrupt: {e}") from e

    async def update(self, draft: RecipeDraft) -> None:
        if not draft.id:
            raise DraftNotFound("Cannot update a draft without an id.")
        now = self.clock()
        await self._write(draft.model_copy(update={"updated_at": now}))
        draft.updated_at = now
        logger.debug("Updated draft %s", draft.id)

    async def delete(self, draft_id: str) -> None:
        try:
            await self.backend.delete(draft_key(draft_id))
        except redis.RedisError as e:
            raise StoreUnavailable(f"Failed to delete draft {draft_id}: {e}") from e
