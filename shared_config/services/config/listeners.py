"""
Listener Registry

Three notification channels, each an ordered registry of subscriptions:
- key: callback(key, new_value) when that key changes
- any: callback() on every mutation event
- condition: callback() when predicate(changed_keys) is true for a batch

Every add returns a Subscription handle. Removal works either through the
handle or by matching the original callables with ==, so a bound method
of the same instance matches. Both are idempotent.
"""

import itertools
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

KeyListener = Callable[[str, Any], None]
AnyListener = Callable[[], None]
ConditionPredicate = Callable[[frozenset[str]], bool]


class Channel(str, Enum):
    KEY = "key"
    ANY = "any"
    CONDITION = "condition"


@dataclass(eq=False)
class Subscription:
    """Handle for one registered listener"""
    id: int
    channel: Channel
    callback: Callable[..., None]
    key: str | None = None
    predicate: ConditionPredicate | None = None
    _registry: "ListenerRegistry | None" = field(default=None, repr=False)

    @property
    def active(self) -> bool:
        return self._registry is not None

    def cancel(self) -> bool:
        """Remove this listener. Returns False if it was already removed."""
        if self._registry is None:
            return False
        return self._registry.remove(self)


class ListenerRegistry:
    """Ordered storage for all three listener channels"""

    def __init__(self):
        self._ids = itertools.count(1)
        self._by_key: dict[str, dict[int, Subscription]] = {}
        self._any: dict[int, Subscription] = {}
        self._conditions: dict[int, Subscription] = {}

    def add_key(self, key: str, callback: KeyListener) -> Subscription:
        sub = Subscription(next(self._ids), Channel.KEY, callback, key=key, _registry=self)
        self._by_key.setdefault(key, {})[sub.id] = sub
        return sub

    def add_any(self, callback: AnyListener) -> Subscription:
        sub = Subscription(next(self._ids), Channel.ANY, callback, _registry=self)
        self._any[sub.id] = sub
        return sub

    def add_condition(self, predicate: ConditionPredicate, callback: AnyListener) -> Subscription:
        sub = Subscription(
            next(self._ids), Channel.CONDITION, callback, predicate=predicate, _registry=self,
        )
        self._conditions[sub.id] = sub
        return sub

    def _bucket(self, sub: Subscription) -> dict[int, Subscription] | None:
        if sub.channel is Channel.KEY:
            return self._by_key.get(sub.key)
        if sub.channel is Channel.ANY:
            return self._any
        return self._conditions

    def remove(self, sub: Subscription) -> bool:
        """Remove by handle"""
        bucket = self._bucket(sub)
        if bucket is None or bucket.get(sub.id) is not sub:
            return False

        del bucket[sub.id]
        if sub.channel is Channel.KEY and not bucket:
            del self._by_key[sub.key]
        sub._registry = None
        return True

    def remove_key(self, key: str, callback: KeyListener) -> int:
        """Remove every key listener registered as (key, callback)"""
        bucket = self._by_key.get(key, {})
        matches = [s for s in bucket.values() if s.callback == callback]
        return sum(self.remove(s) for s in matches)

    def remove_any(self, callback: AnyListener) -> int:
        matches = [s for s in self._any.values() if s.callback == callback]
        return sum(self.remove(s) for s in matches)

    def remove_condition(self, predicate: ConditionPredicate, callback: AnyListener) -> int:
        """Remove condition listeners whose predicate and callback both match"""
        matches = [
            s for s in self._conditions.values()
            if s.predicate == predicate and s.callback == callback
        ]
        return sum(self.remove(s) for s in matches)

    # Emission reads copies, so listeners may unsubscribe while being called

    def key_listeners(self, key: str) -> list[Subscription]:
        return list(self._by_key.get(key, {}).values())

    def any_listeners(self) -> list[Subscription]:
        return list(self._any.values())

    def condition_listeners(self) -> list[Subscription]:
        return list(self._conditions.values())

    def counts(self) -> dict[str, int]:
        return {
            "key": sum(len(b) for b in self._by_key.values()),
            "any": len(self._any),
            "condition": len(self._conditions),
        }
