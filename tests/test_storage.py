"""Tests for the flat JSON task store (storage.py)."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest

from models import Task, TaskStatus
from storage import (
    EPOCH,
    Storage,
    TaskParseError,
    deserialize,
    parse_task_object,
    parse_timestamp,
    serialize,
)

TS = "2024-01-02 03:04:05"
STAMP = datetime(2024, 1, 2, 3, 4, 5)


def _obj(task_id: int, description: str, status: str = "todo") -> str:
    return (
        f'{{"id": {task_id}, "description": "{description}", "status": "{status}", '
        f'"createdAt": "{TS}", "updatedAt": "{TS}"}}'
    )


def _array(*objects: str) -> str:
    return "[\n " + ",\n ".join(objects) + "\n]\n"


class TestSerialize:
    def test_empty_list(self) -> None:
        assert serialize([]) == "[\n]\n"

    def test_single_task_exact_layout(self) -> None:
        task = Task(id=1, description="Buy milk", created_at=STAMP, updated_at=STAMP)
        assert serialize([task]) == (
            "[\n"
            " {\n"
            '   "id": 1,\n'
            '   "description": "Buy milk",\n'
            '   "status": "todo",\n'
            '   "createdAt": "2024-01-02 03:04:05",\n'
            '   "updatedAt": "2024-01-02 03:04:05"\n'
            " }\n"
            "]\n"
        )

    def test_objects_comma_separated_without_trailing_comma(self) -> None:
        tasks = [
            Task(id=1, description="a", created_at=STAMP, updated_at=STAMP),
            Task(id=2, description="b", status=TaskStatus.IN_PROGRESS, created_at=STAMP, updated_at=STAMP),
        ]
        text = serialize(tasks)
        assert text.count(" },\n") == 1
        assert text.endswith(" }\n]\n")
        assert '"status": "in-progress"' in text

    def test_escaping(self) -> None:
        task = Task(id=1, description='He said "hi"\n\tOK', created_at=STAMP, updated_at=STAMP)
        text = serialize([task])
        assert r'"description": "He said \"hi\"\n\tOK"' in text
        assert deserialize(text)[0].description == 'He said "hi"\n\tOK'

    def test_control_characters_and_backslash(self) -> None:
        task = Task(id=1, description="a\\b\bc\fd\re", created_at=STAMP, updated_at=STAMP)
        assert r'"a\\b\bc\fd\re"' in serialize([task])

    def test_non_ascii_written_verbatim(self) -> None:
        task = Task(id=1, description="café ✓", created_at=STAMP, updated_at=STAMP)
        assert '"café ✓"' in serialize([task])


class TestRoundTrip:
    def test_round_trip(self) -> None:
        tasks = [
            Task(id=1, description="plain text", created_at=STAMP, updated_at=STAMP),
            Task(id=4, description='quote " and backslash \\', status=TaskStatus.DONE,
                 created_at=STAMP, updated_at=datetime(2024, 2, 1, 12, 0, 0)),
            Task(id=2, description="multi\nline\twith {braces} and [brackets]",
                 status=TaskStatus.IN_PROGRESS, created_at=STAMP, updated_at=STAMP),
            Task(id=9, description="", created_at=STAMP, updated_at=STAMP),
        ]
        assert deserialize(serialize(tasks)) == tasks

    def test_empty_round_trip(self) -> None:
        assert deserialize(serialize([])) == []


class TestDeserializeContainer:
    @pytest.mark.parametrize("text", ["", "   \n\t", "[", "[]", "[\n]\n"])
    def test_empty_results(self, text: str) -> None:
        assert deserialize(text) == []

    def test_not_an_array(self, caplog) -> None:
        assert deserialize('{"id": 1}') == []
        assert "malformed or empty" in caplog.text

    def test_empty_text_is_silent(self, caplog) -> None:
        assert deserialize("") == []
        assert caplog.text == ""

    def test_unbalanced_last_object_discards_everything(self, caplog) -> None:
        text = _array(
            _obj(1, "one"),
            _obj(2, "two"),
            _obj(3, "three"),
            '{"id": 4, "description": "four", "status": "todo"',
        )
        assert deserialize(text) == []
        assert "Mismatched braces" in caplog.text

    def test_unbalanced_middle_object_discards_everything(self) -> None:
        text = _array(
            _obj(1, "one"),
            '{"id": 2, "description": "missing brace"',
            _obj(3, "three"),
            _obj(4, "four"),
        )
        assert deserialize(text) == []

    def test_braces_inside_strings_do_not_affect_boundaries(self) -> None:
        text = _array(_obj(1, "closing } first"), _obj(2, "then { opening"), _obj(3, "three"))
        assert [t.description for t in deserialize(text)] == [
            "closing } first",
            "then { opening",
            "three",
        ]

    def test_rebalanced_object_is_dropped_alone(self, caplog) -> None:
        # object 2 never closes its own brace, but the stray '}' after it
        # rebalances the depth so the scan resumes at object 3
        text = _array(
            _obj(1, "one"),
            '{"id": 2, "description": "two", "extra": {"nested": 1}\n }',
            _obj(3, "three"),
            _obj(4, "four"),
        )
        tasks = deserialize(text)
        assert [t.id for t in tasks] == [1, 3, 4]
        assert "Skipping malformed task object" in caplog.text


class TestDeserializeRecords:
    def test_fields(self) -> None:
        [task] = deserialize(_array(_obj(7, "seven", "done")))
        assert task == Task(id=7, description="seven", status=TaskStatus.DONE,
                            created_at=STAMP, updated_at=STAMP)

    def test_key_order_does_not_matter(self) -> None:
        text = (f'[{{"updatedAt": "{TS}", "status": "in-progress", "createdAt": "{TS}", '
                f'"description": "reordered", "id": 3}}]')
        [task] = deserialize(text)
        assert task.id == 3
        assert task.status is TaskStatus.IN_PROGRESS

    def test_unknown_status_falls_back_to_todo(self) -> None:
        [task] = deserialize(_array(_obj(1, "x", "bogus")))
        assert task.status is TaskStatus.TODO

    def test_unknown_key_is_ignored(self, caplog) -> None:
        text = f'[{{"id": 1, "priority": "high", "weight": 3, "description": "x", "createdAt": "{TS}", "updatedAt": "{TS}"}}]'
        [task] = deserialize(text)
        assert task.description == "x"
        assert "Unknown key 'priority'" in caplog.text

    def test_missing_optional_fields_use_defaults(self) -> None:
        [task] = deserialize('[{"id": 5}]')
        assert task.description == ""
        assert task.status is TaskStatus.TODO
        assert task.created_at == EPOCH
        assert task.updated_at == EPOCH

    @pytest.mark.parametrize(
        "bad",
        [
            '{"id": "2", "description": "quoted id"}',
            '{"id": 2x, "description": "junk after number"}',
            '{"id": 2 "description": "missing comma"}',
            '{"id" 2, "description": "missing colon"}',
            '{id: 2, "description": "unquoted key"}',
            '{"id": 2, "description": 5}',
            '{"description": "no id"}',
            '{"id": 0, "description": "zero id"}',
            '{"id": 2, "description": "trailing comma",}',
        ],
    )
    def test_malformed_record_is_skipped(self, bad: str) -> None:
        tasks = deserialize(_array(_obj(1, "one"), bad, _obj(3, "three")))
        assert [t.id for t in tasks] == [1, 3]

    def test_bad_timestamp_uses_epoch(self, caplog) -> None:
        text = f'[{{"id": 1, "description": "x", "createdAt": "yesterday", "updatedAt": "{TS}"}}]'
        [task] = deserialize(text)
        assert task.created_at == EPOCH
        assert task.updated_at == STAMP
        assert "Failed to parse timestamp" in caplog.text

    def test_unknown_escape_keeps_character(self) -> None:
        [task] = deserialize(r'[{"id": 1, "description": "a\qb\/c"}]')
        assert task.description == "aqb/c"

    def test_parse_task_object_raises(self) -> None:
        with pytest.raises(TaskParseError):
            parse_task_object('{"id": 1, "description": "x"')

    def test_parse_timestamp(self) -> None:
        assert parse_timestamp(TS) == STAMP
        assert parse_timestamp("2024-01-02T03:04:05") == EPOCH


class TestStorage:
    def test_missing_file_loads_empty(self, tmp_path: Path) -> None:
        assert Storage(tmp_path / "tasks.json").load() == []

    def test_save_then_load(self, tmp_path: Path) -> None:
        path = tmp_path / "nested" / "tasks.json"
        tasks = [Task(id=1, description="persist me", created_at=STAMP, updated_at=STAMP)]
        storage = Storage(path)
        assert storage.save(tasks) is True
        assert path.read_text(encoding="utf-8") == serialize(tasks)
        assert storage.load() == tasks

    def test_save_overwrites_entirely(self, tmp_path: Path) -> None:
        path = tmp_path / "tasks.json"
        path.write_text("x" * 1000, encoding="utf-8")
        assert Storage(path).save([]) is True
        assert path.read_text(encoding="utf-8") == "[\n]\n"

    def test_save_failure_is_reported(self, tmp_path: Path, caplog) -> None:
        # a directory cannot be opened for writing
        assert Storage(tmp_path).save([]) is False
        assert "for writing" in caplog.text

    def test_undecodable_file_loads_empty(self, tmp_path: Path, caplog) -> None:
        path = tmp_path / "tasks.json"
        path.write_bytes(b"[\xff\xfe]")
        assert Storage(path).load() == []
        assert "Could not read" in caplog.text

    def test_corrupt_file_loads_empty(self, tmp_path: Path) -> None:
        path = tmp_path / "tasks.json"
        path.write_text("garbage", encoding="utf-8")
        assert Storage(path).load() == []

    def test_unencodable_description_keeps_existing_file(self, tmp_path: Path, caplog) -> None:
        path = tmp_path / "tasks.json"
        storage = Storage(path)
        kept = [Task(id=1, description="keep me", created_at=STAMP, updated_at=STAMP)]
        assert storage.save(kept) is True

        bad = kept + [Task(id=2, description="bad\udcff", created_at=STAMP, updated_at=STAMP)]
        assert storage.save(bad) is False
        assert "Could not encode" in caplog.text
        assert storage.load() == kept
