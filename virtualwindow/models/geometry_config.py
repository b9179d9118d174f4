"""Sizing rules, geometry configuration and the windowing error types."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Callable, Sequence


class OutOfRange(IndexError):
    """Raised when a placement is requested outside [0, item_count)."""

    def __init__(self, index, item_count: int):
        super().__init__(f"index {index} outside [0, {item_count})")
        self.index = index
        self.item_count = item_count


class InvalidConfig(ValueError):
    """Raised when a config is rejected; the previous config stays in effect."""


class SizingRule:
    """Base class for the ways an item size can be described."""

    def raw_size(self, index: int):
        """Return the unvalidated size for `index`, or None to use the estimate."""
        raise NotImplementedError

    def estimate(self, fallback: float) -> float:
        return fallback


@dataclass(frozen=True)
class Fixed(SizingRule):
    """Every item has the same size."""
    size: float

    def raw_size(self, index: int):
        return self.size

    def estimate(self, fallback: float) -> float:
        # A fixed rule is its own estimate; an unusable size counts as 0,
        # the same as when it is materialized.
        try:
            size = float(self.size)
        except (TypeError, ValueError):
            return 0.0
        if not math.isfinite(size) or size < 0:
            return 0.0
        return size


@dataclass(frozen=True, init=False)
class PerIndex(SizingRule):
    """Explicit per-item sizes; indices past the end fall back to the estimate."""
    sizes: tuple = ()

    def __init__(self, sizes: Sequence[float] = ()):
        object.__setattr__(self, 'sizes', tuple(sizes))

    def raw_size(self, index: int):
        if index < len(self.sizes):
            return self.sizes[index]
        return None


@dataclass(frozen=True)
class Computed(SizingRule):
    """Sizes produced by a callable `index -> size`."""
    func: Callable[[int], float]

    def raw_size(self, index: int):
        return self.func(index)


@dataclass(frozen=True)
class GeometryConfig:
    item_count: int = 0
    sizing: SizingRule = field(default_factory=lambda: Fixed(50))
    expand_sizing: SizingRule = field(default_factory=lambda: Fixed(0))
    expanded: frozenset = frozenset()
    estimated_size: float = 50.0
    estimated_expand_size: float = 50.0

    def __post_init__(self):
        if not isinstance(self.expanded, frozenset):
            object.__setattr__(self, 'expanded', frozenset(self.expanded))

    def validate(self):
        if isinstance(self.item_count, bool) or not isinstance(self.item_count, int):
            raise InvalidConfig(f"item_count must be an int, got {self.item_count!r}")
        if self.item_count < 0:
            raise InvalidConfig(f"item_count must be >= 0, got {self.item_count}")
        for name in ('estimated_size', 'estimated_expand_size'):
            value = getattr(self, name)
            if (isinstance(value, bool) or not isinstance(value, (int, float))
                    or not math.isfinite(value) or value <= 0):
                raise InvalidConfig(f"{name} must be a finite number > 0, got {value!r}")
        if any(isinstance(i, bool) or not isinstance(i, int) for i in self.expanded):
            raise InvalidConfig(f"expanded must contain int indices, got {sorted(self.expanded, key=repr)!r}")
        for name in ('sizing', 'expand_sizing'):
            if not isinstance(getattr(self, name), SizingRule):
                raise InvalidConfig(f"{name} must be a SizingRule, got {getattr(self, name)!r}")
        return self

    def is_expanded(self, index: int) -> bool:
        return index in self.expanded

    def only_expanded_differs(self, other: GeometryConfig) -> bool:
        return (
            self.item_count == other.item_count
            and self.sizing == other.sizing
            and self.expand_sizing == other.expand_sizing
            and self.estimated_size == other.estimated_size
            and self.estimated_expand_size == other.estimated_expand_size
        )


@dataclass(frozen=True)
class GeometryEntry:
    offset: float
    size: float
    expand_offset: float
    expand_size: float


@dataclass(frozen=True)
class VisibleRange:
    start: int = 0
    stop: int = -1

    @property
    def empty(self) -> bool:
        return self.stop < self.start

    def __len__(self):
        return 0 if self.empty else self.stop - self.start + 1

    def __iter__(self):
        return iter(range(self.start, self.stop + 1))

    def __contains__(self, index) -> bool:
        return not self.empty and self.start <= index <= self.stop


EMPTY_RANGE = VisibleRange()
