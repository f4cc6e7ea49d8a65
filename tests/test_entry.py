import json

from lansync.entry import FileEntry


def test_to_json_holds_all_fields():
    entry = FileEntry("docs/a.txt", "txt", 1700000000)
    assert entry.to_json() == {"path": "docs/a.txt", "type": "txt", "version": 1700000000}


def test_round_trip_through_json_text():
    entry = FileEntry("x/y/z.bin", "bin", 42)
    text = json.dumps(entry.to_json())
    assert FileEntry.from_json(json.loads(text)) == entry


def test_from_json_missing_fields_use_defaults():
    assert FileEntry.from_json({}) == FileEntry("", "", 0)


def test_from_json_string_version_is_zero():
    entry = FileEntry.from_json({"path": "a", "type": "t", "version": "5"})
    assert entry.version == 0
    assert entry.path == "a"


def test_from_json_integral_float_version():
    assert FileEntry.from_json({"version": 12.0}).version == 12


def test_from_json_fractional_version_is_zero():
    assert FileEntry.from_json({"version": 12.5}).version == 0


def test_from_json_non_string_path_is_empty():
    entry = FileEntry.from_json({"path": 7, "type": None, "version": 3})
    assert entry == FileEntry("", "", 3)