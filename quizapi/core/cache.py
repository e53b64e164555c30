"""
Redis cache client and the read-through quiz cache.

Keys: ``quizzes`` holds the full list, ``quiz:<id>`` a single quiz with its
questions and answers. The cache is best effort: entries may be stale until
their TTL runs out, and no locking or versioning orders a read against a
concurrent write.
"""
import logging
from typing import List, Optional, Protocol

import redis
from pydantic import TypeAdapter

from quizapi.models.schemas import Quiz

logger = logging.getLogger(__name__)

LIST_KEY = "quizzes"

_quiz_list = TypeAdapter(List[Quiz])


def quiz_key(quiz_id: int) -> str:
    return f"quiz:{quiz_id}"


class CacheClient(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set_with_expiry(self, key: str, value: str, ttl_seconds: int) -> None: ...

    def delete(self, key: str) -> None: ...


class QuizSource(Protocol):
    """Read side of the quiz repository consulted on a cache miss."""

    def find_all_quizzes(self) -> List[Quiz]: ...

    def find_quiz_by_id(self, quiz_id: int) -> Optional[Quiz]: ...


class RedisCacheClient:
    """Key-value access to Redis with per-key expiry."""

    def __init__(self, client: redis.Redis):
        self.redis = client

    @classmethod
    def from_url(cls, url: str) -> "RedisCacheClient":
        return cls(redis.Redis.from_url(url, decode_responses=True))

    def get(self, key: str) -> Optional[str]:
        return self.redis.get(key)

    def set_with_expiry(self, key: str, value: str, ttl_seconds: int) -> None:
        self.redis.set(key, value, ex=ttl_seconds)

    def delete(self, key: str) -> None:
        self.redis.delete(key)


class QuizCache:
    def __init__(self, client: CacheClient, store: QuizSource, list_ttl: int = 30, item_ttl: int = 3600):
        self.client = client
        self.store = store
        self.list_ttl = list_ttl
        self.item_ttl = item_ttl

    def get_all_quizzes(self) -> List[Quiz]:
        cached = self.client.get(LIST_KEY)
        if cached:
            logger.debug("Cache HIT for quizzes")
            return _quiz_list.validate_json(cached)
        logger.debug("Cache MISS for quizzes")
        quizzes = self.store.find_all_quizzes()
        self.client.set_with_expiry(LIST_KEY, _quiz_list.dump_json(quizzes).decode(), self.list_ttl)
        return quizzes

    def get_quiz_by_id(self, quiz_id: int) -> Optional[Quiz]:
        key = quiz_key(quiz_id)
        cached = self.client.get(key)
        if cached:
            logger.debug(f"Cache HIT for {key}")
            return Quiz.model_validate_json(cached)
        logger.debug(f"Cache MISS for {key}")
        quiz = self.store.find_quiz_by_id(quiz_id)
        if quiz is not None:
            self.client.set_with_expiry(key, quiz.model_dump_json(), self.item_ttl)
        return quiz

    def invalidate_on_create(self) -> None:
        # Single-quiz entries cannot reference a quiz that did not exist yet.
        self.client.delete(LIST_KEY)
        logger.debug("Invalidated quizzes")

    def invalidate_on_update(self, quiz_id: int) -> None:
        self.invalidate_on_delete(quiz_id)

    def invalidate_on_delete(self, quiz_id: int) -> None:
        self.client.delete(quiz_key(quiz_id))
        self.client.delete(LIST_KEY)
        logger.debug(f"Invalidated {quiz_key(quiz_id)} and quizzes")
