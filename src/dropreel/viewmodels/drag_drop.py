"""Drag-and-drop resolution for the two panels.

Pointer gestures arrive as a :class:`DragContext` (what is dragged, where the
pointer is, which drop zones exist).  A chain of collision strategies turns
that into a destination, and :class:`DragDropOrchestrator` applies the move
to the :class:`PanelViewModel` unless the compatibility gate refuses it.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

from dropreel.domain.models import Collection, VideoRecord
from dropreel.errors import CompatibilityGateError
from dropreel.errors.handler import ErrorHandler, ErrorSeverity
from dropreel.viewmodels.catalog_viewmodel import CatalogViewModel
from dropreel.viewmodels.panel_viewmodel import PanelViewModel
from dropreel.viewmodels.signal import ObservableProperty, Signal

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True)
class Rect:
    left: float
    top: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height

    @property
    def area(self) -> float:
        return max(0.0, self.width) * max(0.0, self.height)

    @property
    def center(self) -> Point:
        return Point(self.left + self.width / 2, self.top + self.height / 2)

    def contains(self, point: Point) -> bool:
        # Edges count as inside.
        return self.left <= point.x <= self.right and self.top <= point.y <= self.bottom

    def intersection_ratio(self, other: Rect) -> float:
        """Overlap area divided by the area of the union of both rects."""
        width = min(self.right, other.right) - max(self.left, other.left)
        height = min(self.bottom, other.bottom) - max(self.top, other.top)
        if width <= 0 or height <= 0:
            return 0.0
        overlap = width * height
        union = self.area + other.area - overlap
        return overlap / union if union > 0 else 0.0


@dataclass(frozen=True)
class Droppable:
    """A drop zone: a whole panel (``record_id`` is None) or one item in it."""

    id: str
    collection: Collection
    rect: Rect
    record_id: Optional[str] = None

    @property
    def is_container(self) -> bool:
        return self.record_id is None

    @classmethod
    def container(cls, collection: Collection, rect: Rect) -> Droppable:
        return cls(collection.value, collection, rect)

    @classmethod
    def item(cls, collection: Collection, record_id: str, rect: Rect) -> Droppable:
        return cls(f"{collection.value}-{record_id}", collection, rect, record_id)


@dataclass(frozen=True)
class Quadrant:
    is_left: bool
    is_top: bool


@dataclass(frozen=True)
class Collision:
    droppable: Droppable
    # Strategy specific score: overlap ratio or distance.
    value: float = 0.0
    quadrant: Optional[Quadrant] = None


@dataclass
class DragContext:
    active_id: str
    active_rect: Optional[Rect] = None
    pointer: Optional[Point] = None
    droppables: Sequence[Droppable] = field(default_factory=tuple)


CollisionStrategy = Callable[[DragContext], list]


def _pointer_hits(context: DragContext) -> list[Droppable]:
    if context.pointer is None:
        return []
    return [d for d in context.droppables if d.rect.contains(context.pointer)]


def container_only(context: DragContext) -> list[Collision]:
    """Pointer over a panel and nothing else: drop at the end of that panel."""
    hits = _pointer_hits(context)
    if len(hits) == 1 and hits[0].is_container:
        return [Collision(hits[0])]
    return []


def item_quadrant(context: DragContext) -> list[Collision]:
    """Pointer inside an item: target that item, noting which quarter was hit."""
    pointer = context.pointer
    if pointer is None:
        return []
    for droppable in context.droppables:
        if droppable.is_container or not droppable.rect.contains(pointer):
            continue
        center = droppable.rect.center
        quadrant = Quadrant(is_left=pointer.x < center.x, is_top=pointer.y < center.y)
        return [Collision(droppable, quadrant=quadrant)]
    return []


def rect_intersection(context: DragContext) -> list[Collision]:
    if context.active_rect is None:
        return []
    collisions = []
    for droppable in context.droppables:
        ratio = context.active_rect.intersection_ratio(droppable.rect)
        if ratio > 0:
            collisions.append(Collision(droppable, value=ratio))
    collisions.sort(key=lambda collision: collision.value, reverse=True)
    return collisions


def closest_center(context: DragContext) -> list[Collision]:
    if context.active_rect is not None:
        origin = context.active_rect.center
    elif context.pointer is not None:
        origin = context.pointer
    else:
        return []
    collisions = [
        Collision(d, value=math.hypot(d.rect.center.x - origin.x, d.rect.center.y - origin.y))
        for d in context.droppables
    ]
    collisions.sort(key=lambda collision: collision.value)
    return collisions


DEFAULT_STRATEGIES: tuple[CollisionStrategy, ...] = (
    container_only,
    item_quadrant,
    rect_intersection,
    closest_center,
)


def resolve_collisions(
    context: DragContext,
    strategies: Sequence[CollisionStrategy] = DEFAULT_STRATEGIES,
) -> list[Collision]:
    """Return the result of the first strategy that finds anything."""
    for strategy in strategies:
        collisions = strategy(context)
        if collisions:
            return collisions
    return []


class DragDropOrchestrator:
    """Turns drops into panel moves, refusing incompatible records in the reel."""

    def __init__(
        self,
        panels: PanelViewModel,
        catalog: CatalogViewModel,
        error_handler: ErrorHandler,
        strategies: Sequence[CollisionStrategy] = DEFAULT_STRATEGIES,
    ) -> None:
        self._panels = panels
        self._catalog = catalog
        self._errors = error_handler
        self._strategies = tuple(strategies)

        self.active_id = ObservableProperty(None)
        # (record_id, destination, index)
        self.moved = Signal()
        # (record_id, CompatibilityGateError)
        self.blocked = Signal()

    # ------------------------------------------------------------------
    # Drag lifecycle
    # ------------------------------------------------------------------
    def begin_drag(self, record_id: str) -> None:
        self.active_id.value = record_id

    def cancel_drag(self) -> None:
        self.active_id.value = None

    def active_record(self) -> Optional[VideoRecord]:
        record_id = self.active_id.value
        return self._catalog.get(record_id) if record_id else None

    # ------------------------------------------------------------------
    # Drop
    # ------------------------------------------------------------------
    def resolve_destination(self, collision: Collision) -> Optional[tuple[Collection, int]]:
        droppable = collision.droppable
        if droppable.is_container:
            collection = droppable.collection
            return collection, len(self._panels.ids(collection))

        collection = self._panels.collection_of(droppable.record_id)
        if collection is None:
            return None
        return collection, self._panels.ids(collection).index(droppable.record_id)

    def handle_drop(self, context: DragContext) -> bool:
        """Apply the drop described by *context*; returns whether anything moved."""
        self.active_id.value = None
        collisions = resolve_collisions(context, self._strategies)
        if not collisions:
            return False
        destination = self.resolve_destination(collisions[0])
        if destination is None:
            return False
        return self.move_record(context.active_id, *destination)

    def move_record(self, record_id: str, destination: Collection, index: int) -> bool:
        origin = self._panels.collection_of(record_id)
        if origin is None:
            _logger.debug("Ignoring drop of unknown record %s", record_id)
            return False

        record = self._catalog.get(record_id)
        if (
            destination is Collection.TARGET
            and origin is not Collection.TARGET
            and record is not None
            and record.is_compatible is False
        ):
            error = CompatibilityGateError(record.name, record.compatibility_error)
            self._errors.handle(error, ErrorSeverity.ERROR, {"record_id": record_id, "record_path": record.path})
            self.blocked.emit(record_id, error)
            return False

        self._panels.move(record_id, destination, index)
        self.moved.emit(record_id, destination, index)
        return True
