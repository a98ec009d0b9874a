"""Tests for JSON/YAML input loading."""

import json

import pytest
from query_radar_models import QueryExecution, WarehouseDayRow

from query_radar.errors import InputFileError
from query_radar.loaders import load_records, read_rows


class TestReadRows:
    def test_json_list(self, tmp_path):
        path = tmp_path / "runs.json"
        path.write_text(json.dumps([{"a": 1}, {"a": 2}]))
        assert read_rows(path) == [{"a": 1}, {"a": 2}]

    def test_rows_mapping(self, tmp_path):
        path = tmp_path / "runs.json"
        path.write_text(json.dumps({"rows": [{"a": 1}]}))
        assert read_rows(path) == [{"a": 1}]

    def test_yaml(self, tmp_path):
        path = tmp_path / "runs.yaml"
        path.write_text("- a: 1\n- a: 2\n")
        assert read_rows(path) == [{"a": 1}, {"a": 2}]

    def test_empty_file(self, tmp_path):
        path = tmp_path / "runs.yaml"
        path.write_text("")
        assert read_rows(path) == []

    def test_missing(self, tmp_path):
        with pytest.raises(InputFileError, match="not found"):
            read_rows(tmp_path / "missing.json")

    def test_unparseable(self, tmp_path):
        path = tmp_path / "runs.json"
        path.write_text("[{")
        with pytest.raises(InputFileError, match="Cannot parse"):
            read_rows(path)

    def test_wrong_shape(self, tmp_path):
        path = tmp_path / "runs.json"
        path.write_text(json.dumps({"a": 1}))
        with pytest.raises(InputFileError, match="list of records"):
            read_rows(path)
        path.write_text(json.dumps([1, 2]))
        with pytest.raises(InputFileError, match="list of records"):
            read_rows(path)


class TestLoadRecords:
    def test_no_path(self):
        assert load_records(None, QueryExecution) == []

    def test_validates_and_applies_defaults(self, tmp_path):
        path = tmp_path / "runs.json"
        path.write_text(
            json.dumps(
                [
                    {"statement_id": "s1", "warehouse_id": "wh-1", "duration_ms": 1200},
                    {"statement_id": "s2", "warehouse_id": "wh-1", "read_bytes": None},
                ]
            )
        )
        runs = load_records(path, QueryExecution)
        assert [r.statement_id for r in runs] == ["s1", "s2"]
        assert runs[0].warehouse_name == "wh-1"
        assert runs[1].read_bytes == 0

    def test_invalid_record_names_index(self, tmp_path):
        path = tmp_path / "days.json"
        path.write_text(json.dumps([{"warehouse_id": "wh-1"}, {"queries": 3}]))
        with pytest.raises(InputFileError, match="record 1 is not a valid WarehouseDayRow"):
            load_records(path, WarehouseDayRow)
