"""Unit tests for modification tracking."""

from courtplay.schemas import LoadedItem
from courtplay.tracker import ModificationTracker, is_dirty


def _load_position(store, position):
    store.load_position_onto_court(position)
    store.set_loaded_item(LoadedItem(type='position', id=position.id, name=position.name))


class TestPositionDirty:
    """Tests for comparing the live court with a saved position."""

    def test_clean_after_load(self, store, base):
        """Test isDirty is false right after loading."""
        _load_position(store, base)
        assert is_dirty(store.loaded_item, store.live_court, store) is False

    def test_dirty_after_one_unit_move(self, store, base):
        """Test a single-unit change is detected."""
        _load_position(store, base)
        store.place_token('p1', 101, 100)
        assert is_dirty(store.loaded_item, store.live_court, store) is True

    def test_subunit_move_rounds_back(self, store, base):
        _load_position(store, base)
        store.place_token('p1', 100.3, 99.8)
        assert is_dirty(store.loaded_item, store.live_court, store) is False

    def test_token_count_differs(self, store, base):
        _load_position(store, base)
        store.place_token('p3', 10, 10)
        assert is_dirty(store.loaded_item, store.live_court, store) is True

    def test_token_removed(self, store, base):
        _load_position(store, base)
        store.remove_token('p2')
        assert is_dirty(store.loaded_item, store.live_court, store) is True

    def test_same_count_different_player(self, store, base):
        _load_position(store, base)
        store.remove_token('p2')
        store.place_token('p3', 300, 100)
        assert is_dirty(store.loaded_item, store.live_court, store) is True

    def test_deleted_position_is_dirty(self, store, base):
        _load_position(store, base)
        store.remove_position('pos_base')
        assert is_dirty(store.loaded_item, store.live_court, store) is True


class TestOtherItems:
    """Tests for scenarios, sequences and unsaved items."""

    def test_nothing_loaded(self, store):
        assert is_dirty(None, store.live_court, store) is False

    def test_unsaved_is_dirty(self, store):
        item = LoadedItem(type='scenario', id=None, name='Unsaved scenario')
        assert is_dirty(item, store.live_court, store) is True

    def test_scenario_matching_zones_clean(self, store):
        store.select_drop_zones('pos_base', 'pos_spread')
        item = LoadedItem(type='scenario', id='scen_bs')
        assert is_dirty(item, store.live_court, store) is False

    def test_scenario_changed_zone_dirty(self, store):
        store.select_drop_zones('pos_base', 'pos_stack')
        item = LoadedItem(type='scenario', id='scen_bs')
        assert is_dirty(item, store.live_court, store) is True

    def test_scenario_empty_zone_clean(self, store):
        store.select_drop_zones('pos_base', None)
        item = LoadedItem(type='scenario', id='scen_bs')
        assert is_dirty(item, store.live_court, store) is False

    def test_sequence_never_dirty(self, store):
        store.place_token('p1', 1, 1)
        item = LoadedItem(type='sequence', id='seq_play')
        assert is_dirty(item, store.live_court, store) is False


class TestModificationTracker:
    """Tests for keeping the store's modified flag current."""

    def test_attached_tracker_follows_changes(self, store, base):
        tracker = ModificationTracker(store)
        tracker.attach()
        flips = []
        store.add_modified_listener(flips.append)

        _load_position(store, base)
        assert store.is_modified is False

        store.place_token('p1', 150, 150)
        assert store.is_modified is True

        store.place_token('p1', 100, 100)
        assert store.is_modified is False
        assert flips == [True, False]

    def test_attach_is_idempotent(self, store):
        tracker = ModificationTracker(store)
        tracker.attach()
        tracker.attach()
        assert store._change_listeners.count(tracker.check) == 1
