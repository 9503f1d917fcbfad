"""
批处理文件读取：JSON 或 plist 数组，每个元素是一条条目记录。

字段名（大小写不敏感）：`Path`、`Name`、`Operation`、`Value`、`Type`、`Offset`、
`BitIndex`、`BitValue`。读取阶段尽量宽松：无法识别的操作或无法解码的值原样保留，
由执行阶段的校验逐条报告。
"""

from __future__ import annotations

import json
import os
import plistlib
from collections.abc import Sequence
from typing import Any

from .types import Entry, Operation, ValueType

_FIELDS = {
    "path": "path",
    "name": "name",
    "operation": "operation",
    "value": "value",
    "type": "value_type",
    "offset": "offset",
    "bitindex": "bit_index",
    "bitvalue": "bit_value",
}


def parse_hex_bytes(raw: str) -> bytes:
    """解析十六进制字节串，允许空白、`:` 与 `-` 分隔，如 `01 ff`、`01:FF`。"""
    s = raw.strip()
    if s.lower().startswith("hex:"):
        s = s[4:]
    for sep in (" ", "\t", ":", "-", ","):
        s = s.replace(sep, "")
    return bytes.fromhex(s)


def _decode_binary(value: Any) -> Any:
    """JSON 中的二进制值：十六进制字符串或整数列表；无法解码时原样返回。"""
    if isinstance(value, str):
        try:
            return parse_hex_bytes(value)
        except ValueError:
            return value
    if isinstance(value, list) and all(isinstance(x, int) and 0 <= x <= 0xFF for x in value):
        return bytes(value)
    return value


def _lenient(enum_cls, raw: Any) -> Any:
    if not isinstance(raw, str):
        return raw
    try:
        return enum_cls.parse(raw)
    except ValueError:
        return raw


def entry_from_record(record: dict, *, decode_binary: bool = False) -> Entry:
    """把单条记录转换为 `Entry`。"""
    fields: dict[str, Any] = {}
    for key, value in record.items():
        attr = _FIELDS.get(str(key).strip().lower())
        if attr is not None:
            fields[attr] = value

    fields["operation"] = _lenient(Operation, fields.get("operation"))
    if "value_type" in fields:
        fields["value_type"] = _lenient(ValueType, fields["value_type"])
    if decode_binary and fields.get("value_type") == ValueType.BINARY and "value" in fields:
        fields["value"] = _decode_binary(fields["value"])
    if "path" not in fields:
        fields["path"] = ""
    return Entry(**fields)


def entries_from_records(records: Sequence[Any], *, decode_binary: bool = False) -> list[Entry]:
    out: list[Entry] = []
    for i, record in enumerate(records):
        if not isinstance(record, dict):
            raise ValueError(f"batch record #{i + 1} is not an object")
        out.append(entry_from_record(record, decode_binary=decode_binary))
    return out


def load_batch(path: str) -> list[Entry]:
    """读取批处理文件：`.json` 按 JSON 解析，其余按 plist（XML/Binary）解析。"""
    is_json = os.path.splitext(path)[1].lower() == ".json"
    with open(path, "rb") as f:
        records = json.load(f) if is_json else plistlib.load(f)
    if not isinstance(records, list):
        raise ValueError(f"batch file must contain an array of records: {path}")
    # plist 原生支持 <data>，只有 JSON 需要解码二进制值。
    return entries_from_records(records, decode_binary=is_json)
