"""Tests for JSON helpers, id generation and list filtering."""

import json

import pytest

from courtplay.schemas import CurrentBundle, Position
from courtplay.utils import all_tags, filter_items, generate_id, load_json, save_json


class TestJsonFiles:
    """Tests for load_json / save_json."""

    def test_save_uses_aliases(self, tmp_path, base):
        path = tmp_path / 'out' / 'position.json'
        save_json(path, base)

        data = json.loads(path.read_text())
        assert 'playerPositions' in data
        assert data['playerPositions'][0]['playerId'] == 'p1'

    def test_load_with_schema(self, tmp_path, base):
        path = tmp_path / 'position.json'
        save_json(path, base)
        assert load_json(path, Position) == base

    def test_schema_failure_is_value_error(self, tmp_path):
        path = tmp_path / 'bad.json'
        path.write_text('{"version": "4.0", "players": [{"id": "x"}]}')
        with pytest.raises(ValueError, match='Schema validation failed'):
            load_json(path, CurrentBundle)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_json(tmp_path / 'nope.json')


class TestIds:
    def test_prefix(self):
        assert generate_id('scenario').startswith('scen_')
        assert generate_id('sequence') != generate_id('sequence')


class TestFilters:
    """Tests for search and tag filtering."""

    def test_search_is_case_insensitive(self, base, spread, stack):
        assert filter_items([base, spread, stack], 'S') == [base, spread, stack]
        assert filter_items([base, spread, stack], 'sta') == [stack]

    def test_all_selected_tags_required(self, base, stack):
        tagged = base.model_copy(update={'tags': ['Rotation 1', 'Serve']})
        assert filter_items([tagged, stack], tags=['serve', 'rotation 1']) == [tagged]
        assert filter_items([tagged, stack], tags=['serve']) == [tagged, stack]

    def test_all_tags(self, base, stack, scenario):
        assert all_tags([base, stack], [scenario]) == ['Rotation 1', 'Serve']
