"""
各组件共享的错误类型。

每个异常类都带有 `kind` 名称，批处理结果（`ApplyResult.error_kind`）直接记录该名称。
参数类错误同时继承 `ValueError`，存储类错误同时继承 `RuntimeError`，
便于调用方沿用内置异常的捕获方式。
"""

from __future__ import annotations


class RegScopeError(Exception):
    """所有 regscope 错误的基类。"""

    kind = "RegScopeError"


class InvalidPathError(RegScopeError, ValueError):
    kind = "InvalidPath"


class ValidationError(RegScopeError, ValueError):
    """条目缺少所需字段，或字段类型与操作不一致。"""

    kind = "ValidationError"


class OffsetOutOfRangeError(RegScopeError, ValueError):
    kind = "OffsetOutOfRange"


class InvalidBitIndexError(RegScopeError, ValueError):
    kind = "InvalidBitIndex"


class InvalidBitValueError(RegScopeError, ValueError):
    kind = "InvalidBitValue"


class MissingBinaryValueError(RegScopeError, LookupError):
    """按字节/按位修改时，目标位置没有可用的二进制值。"""

    kind = "MissingBinaryValue"


class StoreError(RegScopeError, RuntimeError):
    """由存储层抛出或转换而来的错误。"""

    kind = "StoreError"
