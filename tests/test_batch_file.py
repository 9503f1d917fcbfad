import json
import plistlib

import pytest

from regscope.batch_file import entry_from_record, load_batch, parse_hex_bytes
from regscope.types import Entry, Operation, ValueType


def test_parse_hex_bytes_accepts_common_separators() -> None:
    assert parse_hex_bytes("01 ff") == b"\x01\xff"
    assert parse_hex_bytes("01:FF:00") == b"\x01\xff\x00"
    assert parse_hex_bytes("hex:01,02") == b"\x01\x02"
    with pytest.raises(ValueError):
        parse_hex_bytes("zz")


def test_entry_from_record_maps_fields_case_insensitively() -> None:
    e = entry_from_record(
        {"path": r"HKCU\X", "NAME": "A", "Operation": "setbit", "Offset": 1, "bitIndex": 2,
         "BitValue": 1}
    )
    assert e == Entry(path=r"HKCU\X", name="A", operation=Operation.SET_BIT, offset=1,
                      bit_index=2, bit_value=1)


def test_entry_from_record_keeps_unknown_values_for_validation() -> None:
    e = entry_from_record({"Path": r"HKCU\X", "Operation": "Rename", "Type": "Weird"})
    assert e.operation == "Rename"
    assert e.value_type == "Weird"
    assert entry_from_record({"Name": "A"}).path == ""
    assert entry_from_record({"Path": r"HKCU\X"}).operation is None


def test_load_json_batch_decodes_binary_values(tmp_path) -> None:
    path = tmp_path / "batch.json"
    path.write_text(
        json.dumps(
            [
                {"Path": r"HKCU\X", "Name": "Hex", "Operation": "Set", "Type": "Binary",
                 "Value": "01 02"},
                {"Path": r"HKCU\X", "Name": "List", "Operation": "Set", "Type": "Binary",
                 "Value": [3, 4]},
                {"Path": r"HKCU\X", "Name": "Bad", "Operation": "Set", "Type": "Binary",
                 "Value": "nothex"},
                {"Path": r"HKCU\X", "Name": "Str", "Operation": "Set", "Type": "String",
                 "Value": "01 02"},
            ]
        ),
        encoding="utf-8",
    )

    entries = load_batch(str(path))

    assert [e.value for e in entries] == [b"\x01\x02", b"\x03\x04", "nothex", "01 02"]
    assert entries[0].value_type == ValueType.BINARY


def test_load_plist_batch_keeps_native_data(tmp_path) -> None:
    path = tmp_path / "batch.plist"
    path.write_bytes(
        plistlib.dumps(
            [{"Path": r"HKCU\X", "Name": "F", "Operation": "Set", "Type": "Binary",
              "Value": b"\x00\x01"}]
        )
    )
    (entry,) = load_batch(str(path))
    assert entry.value == b"\x00\x01"


def test_load_batch_rejects_non_array(tmp_path) -> None:
    path = tmp_path / "batch.json"
    path.write_text('{"Path": "HKCU"}', encoding="utf-8")
    with pytest.raises(ValueError):
        load_batch(str(path))

    path.write_text('[1, 2]', encoding="utf-8")
    with pytest.raises(ValueError):
        load_batch(str(path))
