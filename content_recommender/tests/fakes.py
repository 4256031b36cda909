"""
In-memory stand-ins for Redis and the Mongo repositories.
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from redis.exceptions import ConnectionError as RedisConnectionError

from content_recommender.models import ContentItem, ContentType, InteractionEvent, InteractionType

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _glob_class(pattern: str, i: int):
    """Translate a Redis ``[...]`` class starting after ``[``; return (regex, next index)."""
    negate = i < len(pattern) and pattern[i] == "^"
    if negate:
        i += 1
    members = []
    while i < len(pattern) and pattern[i] != "]":
        c = pattern[i]
        if c == "\\" and i + 1 < len(pattern):
            members.append(re.escape(pattern[i + 1]))
            i += 2
        elif i + 2 < len(pattern) and pattern[i + 1] == "-" and pattern[i + 2] != "]":
            low, high = sorted((c, pattern[i + 2]))
            members.append(f"{re.escape(low)}-{re.escape(high)}")
            i += 3
        else:
            members.append(re.escape(c))
            i += 1
    body = "".join(members)
    if not body:
        return ("." if negate else "(?!)"), i + 1
    return f"[{'^' if negate else ''}{body}]", i + 1


def _glob_to_regex(pattern: str) -> "re.Pattern":
    """Redis glob semantics: ``*``, ``?``, ``[...]`` classes and ``\\`` escapes."""
    out = []
    i = 0
    while i < len(pattern):
        c = pattern[i]
        if c == "\\" and i + 1 < len(pattern):
            out.append(re.escape(pattern[i + 1]))
            i += 2
            continue
        if c == "[":
            regex, i = _glob_class(pattern, i + 1)
            out.append(regex)
            continue
        if c == "*":
            out.append(".*")
        elif c == "?":
            out.append(".")
        else:
            out.append(re.escape(c))
        i += 1
    return re.compile("^" + "".join(out) + "$", re.DOTALL)


class InMemoryPipeline:
    def __init__(self, redis):
        self.redis = redis
        self.commands = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def set(self, key, value, ex=None):
        self.commands.append((key, value, ex))
        return self

    async def execute(self):
        self.redis._check()
        self.redis.pipeline_calls += 1
        commands, self.commands = self.commands, []
        for key, value, ex in commands:
            await self.redis.set(key, value, ex=ex)
        return [True] * len(commands)


class InMemoryRedis:
    """Async stand-in for the subset of redis.asyncio.Redis the cache uses."""

    def __init__(self):
        self.data: Dict[str, str] = {}
        self.ttls: Dict[str, Optional[int]] = {}
        self.available = True
        self.pipeline_calls = 0

    def _check(self):
        if not self.available:
            raise RedisConnectionError("redis is down")

    async def get(self, key):
        self._check()
        return self.data.get(key)

    async def mget(self, keys):
        self._check()
        return [self.data.get(k) for k in keys]

    async def set(self, key, value, ex=None, nx=False):
        self._check()
        if nx and key in self.data:
            return None
        self.data[key] = value
        self.ttls[key] = ex
        return True

    async def delete(self, *keys):
        self._check()
        removed = 0
        for key in keys:
            if key in self.data:
                del self.data[key]
                self.ttls.pop(key, None)
                removed += 1
        return removed

    async def unlink(self, *keys):
        return await self.delete(*keys)

    async def scan_iter(self, match=None, count=None):
        self._check()
        regex = _glob_to_regex(match or "*")
        for key in list(self.data):
            if regex.match(key):
                yield key

    async def incrby(self, key, amount=1):
        self._check()
        value = int(self.data.get(key, 0)) + amount
        self.data[key] = str(value)
        return value

    def pipeline(self, transaction=True):
        return InMemoryPipeline(self)


class InMemoryContentRepository:
    def __init__(self, items: Optional[List[ContentItem]] = None):
        self.items: Dict[str, ContentItem] = {}
        for item in items or []:
            self.items[item.content_id] = item

    async def find_by_id(self, content_id):
        return self.items.get(content_id)

    async def find_all(self):
        return list(self.items.values())

    async def find_recent(self, limit):
        ranked = sorted(self.items.values(), key=lambda item: item.created_at, reverse=True)
        return ranked[:limit]

    async def find_by_ids(self, content_ids):
        wanted = set(content_ids)
        return [item for cid, item in self.items.items() if cid in wanted]

    async def count(self):
        return len(self.items)

    async def save(self, item):
        self.items[item.content_id] = item
        return item


class InMemoryInteractionRepository:
    def __init__(self):
        self.events: List[InteractionEvent] = []

    async def create(self, event):
        self.events.append(event)
        return event

    def _newest_first(self, events):
        indexed = list(enumerate(events))
        indexed.sort(key=lambda pair: (pair[1].timestamp, pair[0]), reverse=True)
        return [event for _, event in indexed]

    async def find_by_user(self, user_id, limit):
        mine = [e for e in self.events if e.user_id == user_id]
        return self._newest_first(mine)[:limit]

    async def find_recent(self, limit):
        return self._newest_first(self.events)[:limit]

    async def count(self):
        return len(self.events)

    async def count_users(self):
        return len({e.user_id for e in self.events})

    async def popular_content(self, limit):
        counts: Dict[str, int] = {}
        for event in self.events:
            counts[event.content_id] = counts.get(event.content_id, 0) + 1
        ranked = sorted(counts.items(), key=lambda pair: (-pair[1], pair[0]))
        return ranked[:limit]

    async def count_by_type(self, content_id):
        counts: Dict[str, int] = {}
        for event in self.events:
            if event.content_id == content_id:
                kind = event.interaction_type.value
                counts[kind] = counts.get(kind, 0) + 1
        return counts


class InMemoryIndexRepository:
    def __init__(self):
        self.tables: Dict[str, List[str]] = {}

    async def load(self, name):
        return list(self.tables.get(name, []))

    async def save(self, name, identifiers):
        self.tables[name] = list(identifiers)


def make_item(content_id: str, **overrides) -> ContentItem:
    data = {
        "content_id": content_id,
        "title": f"Title {content_id}",
        "description": f"Description of {content_id}",
        "content_type": ContentType.TEXT,
        "tags": [],
        "created_at": BASE_TIME,
    }
    data.update(overrides)
    return ContentItem(**data)


def make_event(
    user_id: str,
    content_id: str,
    minutes: int = 0,
    interaction_type: InteractionType = InteractionType.VIEW,
    value: Optional[float] = None
) -> InteractionEvent:
    return InteractionEvent(
        user_id=user_id,
        content_id=content_id,
        interaction_type=interaction_type,
        value=value,
        timestamp=BASE_TIME + timedelta(minutes=minutes)
    )

