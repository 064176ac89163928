"""LRU cache of per-subject animation sets built by :class:`SpriteLoader`."""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional

from . import AnimationClip
from .offsets_store import OffsetAdjustment
from .sprite_files import AnimationType, PokemonVariant
from .sprite_loader import SpriteLoader

logger = logging.getLogger(__name__)

MIN_CACHE_ENTRIES = 5


@dataclass(frozen=True)
class PokemonAnimationSet:
    walk_right: Optional[AnimationClip] = None
    walk_left: Optional[AnimationClip] = None
    walk_fallback: Optional[AnimationClip] = None
    idle: Optional[AnimationClip] = None
    fight: Optional[AnimationClip] = None
    sleep: Optional[AnimationClip] = None
    use_directional_walk: bool = False
    offset: Optional[OffsetAdjustment] = None

    def walk(self, facing_right: bool = True) -> Optional[AnimationClip]:
        if self.use_directional_walk:
            return self.walk_right if facing_right else self.walk_left
        return self.walk_fallback

    def idle_or_walk(self) -> Optional[AnimationClip]:
        return self.idle or self.walk()

    def sleep_or_idle(self) -> Optional[AnimationClip]:
        return self.sleep or self.idle_or_walk()

    @property
    def is_empty(self) -> bool:
        return not any((self.walk_right, self.walk_left, self.walk_fallback, self.idle, self.fight, self.sleep))


class _Entry:
    __slots__ = ("animations", "pinned")

    def __init__(self, animations: PokemonAnimationSet):
        self.animations = animations
        self.pinned = False


class SpriteCache:
    """Keeps at most ``max_entries`` animation sets, evicting the least recently used.

    Pinned entries are skipped by eviction unless every entry is pinned.
    Concurrent loads for the same subject, blocking or background, share one future.
    """

    def __init__(self, loader: SpriteLoader, max_entries: Optional[int] = None, workers: int = 2):
        self.loader = loader
        configured = max_entries if max_entries is not None else loader.config.sprite_cache_max_entries
        self.max_entries = max(MIN_CACHE_ENTRIES, configured)
        self._entries: "OrderedDict[str, _Entry]" = OrderedDict()
        self._pending: dict[str, Future] = {}
        self._lock = threading.RLock()
        self._executor = ThreadPoolExecutor(max_workers=max(1, workers), thread_name_prefix="sprite-cache")

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, unique_id: str) -> bool:
        with self._lock:
            return unique_id in self._entries

    def get_animations(self, dex: int, form_id: str) -> PokemonAnimationSet:
        """Cached set, or a blocking load; waits on an in-flight load for the same subject."""

        unique_id = PokemonVariant(dex, form_id).unique_id
        with self._lock:
            entry = self._entries.get(unique_id)
            if entry is not None:
                self._entries.move_to_end(unique_id)
                logger.debug("Sprite cache hit: %s (%s cached)", unique_id, len(self._entries))
                return entry.animations
            pending = self._pending.get(unique_id)
            if pending is None:
                future: Future = Future()
                self._pending[unique_id] = future

        if pending is not None:
            logger.debug("Sprite cache waiting on in-flight load: %s", unique_id)
            return pending.result()

        try:
            animations = self._load_set(dex, form_id)
        except Exception:
            with self._lock:
                self._pending.pop(unique_id, None)
            future.set_result(PokemonAnimationSet())
            raise

        with self._lock:
            self._pending.pop(unique_id, None)
            if unique_id not in self._entries:
                self._insert(unique_id, animations)
            animations = self._entries[unique_id].animations
            logger.debug("Sprite cache miss: %s loaded (%s cached)", unique_id, len(self._entries))
        future.set_result(animations)
        return animations

    def preload(self, dex: int, form_id: str) -> None:
        self.get_animations(dex, form_id)

    def get_animations_async(self, dex: int, form_id: str) -> "Future[PokemonAnimationSet]":
        """Future resolving to the animation set; concurrent calls for one subject coalesce.

        A failed background load is logged and resolves to an empty set.
        """

        unique_id = PokemonVariant(dex, form_id).unique_id
        with self._lock:
            entry = self._entries.get(unique_id)
            if entry is not None:
                self._entries.move_to_end(unique_id)
                done: Future = Future()
                done.set_result(entry.animations)
                return done
            pending = self._pending.get(unique_id)
            if pending is not None:
                logger.debug("Sprite cache coalesced load: %s", unique_id)
                return pending
            future = self._executor.submit(self._load_async, unique_id, dex, form_id)
            self._pending[unique_id] = future
            return future

    def _load_async(self, unique_id: str, dex: int, form_id: str) -> PokemonAnimationSet:
        try:
            animations = self._load_set(dex, form_id)
        except Exception:
            logger.exception("Sprite cache background load failed: %s", unique_id)
            with self._lock:
                self._pending.pop(unique_id, None)
            return PokemonAnimationSet()

        with self._lock:
            self._pending.pop(unique_id, None)
            if unique_id not in self._entries:
                self._insert(unique_id, animations)
            return self._entries[unique_id].animations

    def pin(self, unique_id: str) -> None:
        with self._lock:
            entry = self._entries.get(unique_id)
            if entry is not None:
                entry.pinned = True
                self._entries.move_to_end(unique_id)

    def unpin(self, unique_id: str) -> None:
        with self._lock:
            entry = self._entries.get(unique_id)
            if entry is not None:
                entry.pinned = False

    def invalidate(self, unique_id: str) -> None:
        with self._lock:
            if self._entries.pop(unique_id, None) is not None:
                logger.debug("Sprite cache invalidated: %s", unique_id)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
        logger.debug("Sprite cache cleared")

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)

    def _insert(self, unique_id: str, animations: PokemonAnimationSet) -> None:
        self._entries[unique_id] = _Entry(animations)
        self._entries.move_to_end(unique_id)
        while len(self._entries) > self.max_entries:
            self._evict(keep=unique_id)

    def _evict(self, keep: str) -> None:
        for key, entry in self._entries.items():
            if not entry.pinned and key != keep:
                del self._entries[key]
                logger.debug("Sprite cache evicted: %s", key)
                return
        key, _ = self._entries.popitem(last=False)
        logger.debug("Sprite cache force-evicted (all pinned): %s", key)

    def _load_set(self, dex: int, form_id: str) -> PokemonAnimationSet:
        rows = self.loader.config.sprite
        load = self.loader.load_animation

        walk_right = load(dex, form_id, AnimationType.WALK, [rows.walk_row_right], require_selection=True)
        walk_left = load(dex, form_id, AnimationType.WALK, [rows.walk_row_left], require_selection=True)
        directional = walk_right is not None and walk_left is not None
        walk_fallback = None
        if not directional:
            walk_right = walk_left = None
            walk_fallback = load(dex, form_id, AnimationType.WALK)

        return PokemonAnimationSet(
            walk_right=walk_right,
            walk_left=walk_left,
            walk_fallback=walk_fallback,
            idle=load(dex, form_id, AnimationType.IDLE),
            fight=load(dex, form_id, AnimationType.FIGHT),
            sleep=load(dex, form_id, AnimationType.SLEEP),
            use_directional_walk=directional,
            offset=self.loader.try_get_offset(PokemonVariant(dex, form_id).unique_id),
        )
