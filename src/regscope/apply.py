"""
将 `Entry` 条目逐个应用到键值存储。

每个条目依次经过：校验 -> 按操作分派 -> 写回存储 -> 生成结果。
单个条目失败只记录在其 `ApplyResult` 中，不会中断批处理。
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from typing import Any

from .binary_patch import apply_plan, plan_set_bit, plan_set_byte
from .errors import MissingBinaryValueError, RegScopeError, StoreError, ValidationError
from .reg_path import parse_key_path
from .store import KeyValueStore
from .types import (
    ApplyResult,
    DeleteValue,
    Entry,
    Operation,
    SetBitValue,
    SetByteValue,
    SetValue,
    ValidEntry,
    ValueType,
)


def _is_int(v: object) -> bool:
    return isinstance(v, int) and not isinstance(v, bool)


def _require(entry: Entry, field: str, value: Any) -> Any:
    if value is None:
        raise ValidationError(f"{entry.operation} requires {field}")
    return value


def _require_int(entry: Entry, field: str, value: Any) -> int:
    _require(entry, field, value)
    if not _is_int(value):
        raise ValidationError(f"{field} must be an integer, got {type(value).__name__}")
    return value


def _require_name(entry: Entry) -> str:
    name = _require(entry, "name", entry.name)
    if not isinstance(name, str):
        raise ValidationError(f"name must be a string, got {type(name).__name__}")
    return name


def _coerce_typed_value(value: Any, value_type: ValueType) -> Any:
    """检查 `value` 与 `value_type` 是否一致，返回规范化后的值。"""
    if value_type in (ValueType.STRING, ValueType.EXPAND_STRING):
        if isinstance(value, str):
            return value
    elif value_type == ValueType.MULTI_STRING:
        if isinstance(value, (list, tuple)) and all(isinstance(x, str) for x in value):
            return list(value)
    elif value_type == ValueType.DWORD:
        if _is_int(value) and 0 <= value < 1 << 32:
            return value
    elif value_type == ValueType.QWORD:
        if _is_int(value) and 0 <= value < 1 << 64:
            return value
    elif value_type == ValueType.BINARY:
        if isinstance(value, (bytes, bytearray)):
            return bytes(value)
    raise ValidationError(f"value {value!r} is not a valid {value_type.value}")


def validate_entry(entry: Entry) -> ValidEntry:
    """校验条目所需字段，返回对应的强类型变体；不合法时抛出 `ValidationError`。"""
    op = entry.operation
    if not isinstance(op, Operation):
        try:
            op = Operation.parse(str(op))
        except ValueError as e:
            raise ValidationError(str(e)) from e

    parse_key_path(entry.path)

    if op == Operation.SET:
        name = _require_name(entry)
        value = _require(entry, "value", entry.value)
        raw_type = _require(entry, "type", entry.value_type)
        try:
            value_type = ValueType.parse(str(raw_type))
        except ValueError as e:
            raise ValidationError(str(e)) from e
        return SetValue(
            path=entry.path,
            name=name,
            value=_coerce_typed_value(value, value_type),
            value_type=value_type,
        )

    if op == Operation.DELETE:
        if entry.name is not None and not isinstance(entry.name, str):
            raise ValidationError(f"name must be a string, got {type(entry.name).__name__}")
        return DeleteValue(path=entry.path, name=entry.name)

    if op == Operation.SET_BYTE:
        return SetByteValue(
            path=entry.path,
            name=_require_name(entry),
            offset=_require_int(entry, "offset", entry.offset),
            value=_require_int(entry, "value", entry.value),
        )

    # SetBit：未提供 bit_value 时以 value 作为位值。
    bit_value = entry.bit_value if entry.bit_value is not None else entry.value
    return SetBitValue(
        path=entry.path,
        name=_require_name(entry),
        offset=_require_int(entry, "offset", entry.offset),
        bit_index=_require_int(entry, "bit_index", entry.bit_index),
        bit_value=_require_int(entry, "bit_value", bit_value),
    )


def _store_call(fn: Callable[..., Any], *args: Any) -> Any:
    """调用存储方法，并把其非 regscope 错误统一转换为 `StoreError`。"""
    try:
        return fn(*args)
    except RegScopeError:
        raise
    except Exception as e:
        # 外部存储抛出的任何异常都归为 StoreError。
        raise StoreError(f"store {getattr(fn, '__name__', 'call')} failed: {e}") from e


def _read_binary(store: KeyValueStore, path: str, name: str) -> bytes:
    found = _store_call(store.get, path, name)
    if found is None:
        raise MissingBinaryValueError(f"no binary value {name!r} at {path}")
    value, value_type = found
    if str(value_type) != ValueType.BINARY.value or not isinstance(value, (bytes, bytearray)):
        raise MissingBinaryValueError(
            f"value {name!r} at {path} is {value_type}, not {ValueType.BINARY.value}"
        )
    return bytes(value)


def _dispatch(op: ValidEntry, store: KeyValueStore) -> None:
    if isinstance(op, SetValue):
        _store_call(store.set, op.path, op.name, op.value, op.value_type)
    elif isinstance(op, DeleteValue):
        _store_call(store.delete, op.path, op.name)
    elif isinstance(op, SetByteValue):
        buf = _read_binary(store, op.path, op.name)
        new = apply_plan(buf, plan_set_byte(buf, op.offset, op.value))
        _store_call(store.set, op.path, op.name, new, ValueType.BINARY)
    elif isinstance(op, SetBitValue):
        buf = _read_binary(store, op.path, op.name)
        new = apply_plan(buf, plan_set_bit(buf, op.offset, op.bit_index, op.bit_value))
        _store_call(store.set, op.path, op.name, new, ValueType.BINARY)
    else:
        raise RuntimeError(f"Unknown entry variant: {op!r}")


def apply_entry(entry: Entry, store: KeyValueStore) -> ApplyResult:
    """应用单个条目；任何已知错误都转换为失败结果而不是抛出。"""
    try:
        _dispatch(validate_entry(entry), store)
    except RegScopeError as e:
        return ApplyResult(entry=entry, ok=False, error_kind=e.kind, reason=str(e))
    return ApplyResult(entry=entry, ok=True)


def describe_entry(entry: Entry) -> str:
    """生成条目的简短描述，如 `Set HKCU\\Software\\X@Name`。"""
    target = entry.path if entry.name is None else f"{entry.path}@{entry.name}"
    return f"{entry.operation} {target}"


def run_batch(
    entries: Iterable[Entry],
    store: KeyValueStore,
    *,
    verbose: bool = False,
) -> list[ApplyResult]:
    """按输入顺序依次应用条目，每个条目对应一个结果，遇到失败继续执行。"""
    results: list[ApplyResult] = []
    for entry in entries:
        result = apply_entry(entry, store)
        if verbose:
            if result.ok:
                print(f"+ {describe_entry(entry)}")
            else:
                print(f"! {describe_entry(entry)}: {result.error_kind}: {result.reason}")
        results.append(result)
    return results


def summarize(results: Sequence[ApplyResult]) -> tuple[int, list[ApplyResult]]:
    """返回 `(成功数, 失败结果列表)`。"""
    failed = [r for r in results if not r.ok]
    return len(results) - len(failed), failed
