"""Tests for collision resolution and the drag-and-drop orchestrator."""

import logging
from unittest.mock import Mock

import pytest

from conftest import make_record
from dropreel.domain.models import Collection
from dropreel.errors import CompatibilityGateError
from dropreel.errors.handler import ErrorHandler, ErrorOccurredEvent, ErrorSeverity
from dropreel.events.bus import EventBus
from dropreel.viewmodels.catalog_viewmodel import CatalogViewModel
from dropreel.viewmodels.drag_drop import (
    DragContext,
    DragDropOrchestrator,
    Droppable,
    Point,
    Rect,
    closest_center,
    container_only,
    item_quadrant,
    rect_intersection,
    resolve_collisions,
)
from dropreel.viewmodels.panel_viewmodel import PanelViewModel

SOURCE = Collection.SOURCE
TARGET = Collection.TARGET

SOURCE_RECT = Rect(0, 0, 400, 600)
TARGET_RECT = Rect(500, 0, 400, 600)


def _item(collection, record_id, index, panel_rect):
    return Droppable.item(collection, record_id, Rect(panel_rect.left + 10, 10 + index * 110, 380, 100))


class TestGeometry:
    def test_rect_contains_edges(self):
        rect = Rect(0, 0, 10, 10)
        assert rect.contains(Point(0, 0))
        assert rect.contains(Point(10, 10))
        assert not rect.contains(Point(10.1, 5))

    def test_intersection_ratio(self):
        a = Rect(0, 0, 10, 10)
        assert a.intersection_ratio(Rect(0, 0, 10, 10)) == 1.0
        assert a.intersection_ratio(Rect(5, 0, 10, 10)) == pytest.approx(50 / 150)
        assert a.intersection_ratio(Rect(20, 20, 5, 5)) == 0.0


class TestStrategies:
    def test_container_only_when_pointer_hits_just_the_panel(self):
        target = Droppable.container(TARGET, TARGET_RECT)
        context = DragContext("x", pointer=Point(700, 590), droppables=[Droppable.container(SOURCE, SOURCE_RECT), target])

        [collision] = container_only(context)

        assert collision.droppable is target

    def test_container_only_declines_when_over_an_item(self):
        item = _item(TARGET, "r1", 0, TARGET_RECT)
        context = DragContext("x", pointer=Point(600, 50), droppables=[Droppable.container(TARGET, TARGET_RECT), item])
        assert container_only(context) == []

    def test_item_quadrant_records_the_hit_quarter(self):
        item = _item(TARGET, "r1", 0, TARGET_RECT)
        context = DragContext("x", pointer=Point(550, 90), droppables=[Droppable.container(TARGET, TARGET_RECT), item])

        [collision] = item_quadrant(context)

        assert collision.droppable is item
        assert collision.quadrant.is_left is True
        assert collision.quadrant.is_top is False

    def test_rect_intersection_orders_by_overlap(self):
        near = Droppable.item(SOURCE, "near", Rect(0, 0, 100, 100))
        far = Droppable.item(SOURCE, "far", Rect(80, 80, 100, 100))
        context = DragContext("x", active_rect=Rect(10, 10, 100, 100), droppables=[far, near])

        collisions = rect_intersection(context)

        assert [c.droppable.record_id for c in collisions] == ["near", "far"]

    def test_closest_center_orders_by_distance(self):
        a = Droppable.item(SOURCE, "a", Rect(0, 0, 10, 10))
        b = Droppable.item(SOURCE, "b", Rect(100, 100, 10, 10))
        context = DragContext("x", active_rect=Rect(90, 90, 10, 10), droppables=[a, b])
        assert [c.droppable.record_id for c in closest_center(context)] == ["b", "a"]

    def test_chain_falls_through_to_closest_center(self):
        a = Droppable.item(SOURCE, "a", Rect(0, 0, 10, 10))
        context = DragContext("x", active_rect=Rect(500, 500, 10, 10), pointer=Point(505, 505), droppables=[a])
        [collision] = resolve_collisions(context)
        assert collision.droppable is a

    def test_chain_returns_nothing_without_droppables(self):
        assert resolve_collisions(DragContext("x", pointer=Point(0, 0))) == []


@pytest.fixture
def setup():
    bus = EventBus()
    catalog = CatalogViewModel(bus)
    catalog.replace([make_record("good1.mp4"), make_record("bad.mkv"), make_record("good2.mp4")])
    good1, bad, good2 = catalog.ids()
    catalog.update(bad, lambda r: r.with_probe_result(False, "Video format not supported"))
    panels = PanelViewModel(catalog, bus)
    handler = ErrorHandler(Mock(spec=logging.Logger), bus)
    banner = Mock()
    handler.register_ui_callback(banner)
    orchestrator = DragDropOrchestrator(panels, catalog, handler)
    return {
        "bus": bus, "catalog": catalog, "panels": panels, "orchestrator": orchestrator,
        "banner": banner, "ids": (good1, bad, good2),
    }


def _droppables(panels):
    items = [_item(SOURCE, rid, i, SOURCE_RECT) for i, rid in enumerate(panels.source_ids.value)]
    items += [_item(TARGET, rid, i, TARGET_RECT) for i, rid in enumerate(panels.target_ids.value)]
    return [Droppable.container(SOURCE, SOURCE_RECT), Droppable.container(TARGET, TARGET_RECT), *items]


class TestOrchestrator:
    def test_drop_on_target_container_appends(self, setup):
        panels, orchestrator = setup["panels"], setup["orchestrator"]
        good1, bad, good2 = setup["ids"]

        orchestrator.begin_drag(good2)
        assert orchestrator.active_record().id == good2
        moved = orchestrator.handle_drop(DragContext(good2, pointer=Point(700, 590), droppables=_droppables(panels)))

        assert moved
        assert panels.target_ids.value == (good2,)
        assert orchestrator.active_id.value is None

    def test_drop_on_item_takes_its_index(self, setup):
        panels, orchestrator = setup["panels"], setup["orchestrator"]
        good1, bad, good2 = setup["ids"]
        panels.move(good1, TARGET, 0)

        orchestrator.handle_drop(DragContext(good2, pointer=Point(600, 50), droppables=_droppables(panels)))

        assert panels.target_ids.value == (good2, good1)

    def test_reorder_within_source_uses_array_move(self, setup):
        panels, orchestrator = setup["panels"], setup["orchestrator"]
        good1, bad, good2 = setup["ids"]

        # Pointer over the third source item.
        orchestrator.handle_drop(DragContext(good1, pointer=Point(100, 240), droppables=_droppables(panels)))

        assert panels.source_ids.value == (bad, good2, good1)

    def test_incompatible_record_cannot_enter_target(self, setup):
        panels, orchestrator, banner = setup["panels"], setup["orchestrator"], setup["banner"]
        good1, bad, good2 = setup["ids"]
        panels.move(good1, TARGET, 0)
        errors = []
        setup["bus"].subscribe(ErrorOccurredEvent, errors.append)
        before = (panels.source_ids.value, panels.target_ids.value)

        moved = orchestrator.handle_drop(DragContext(bad, pointer=Point(700, 590), droppables=_droppables(panels)))

        assert moved is False
        assert (panels.source_ids.value, panels.target_ids.value) == before
        banner.assert_called_once_with(
            'Cannot add "bad.mkv" to reel: Video format not supported', ErrorSeverity.ERROR
        )
        assert isinstance(errors[0].error, CompatibilityGateError)

    def test_incompatible_record_can_still_be_reordered_in_source(self, setup):
        panels, orchestrator = setup["panels"], setup["orchestrator"]
        good1, bad, good2 = setup["ids"]

        assert orchestrator.move_record(bad, SOURCE, 0)

        assert panels.source_ids.value == (bad, good1, good2)
        setup["banner"].assert_not_called()

    def test_unknown_compatibility_is_not_blocked(self, setup):
        panels, orchestrator = setup["panels"], setup["orchestrator"]
        good1 = setup["ids"][0]
        assert orchestrator.move_record(good1, TARGET, 0)
        assert panels.target_ids.value == (good1,)

    def test_drop_with_no_collision_changes_nothing(self, setup):
        panels, orchestrator = setup["panels"], setup["orchestrator"]
        before = (panels.source_ids.value, panels.target_ids.value)
        assert orchestrator.handle_drop(DragContext(setup["ids"][0], pointer=Point(0, 0))) is False
        assert (panels.source_ids.value, panels.target_ids.value) == before

    def test_cancel_drag_clears_active_record(self, setup):
        orchestrator = setup["orchestrator"]
        orchestrator.begin_drag(setup["ids"][0])
        orchestrator.cancel_drag()
        assert orchestrator.active_record() is None
