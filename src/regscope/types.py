"""
分类、批处理与 CLI 共享的轻量类型定义。
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class _NamedEnum(str, Enum):
    """按名称（大小写不敏感）解析的字符串枚举。"""

    @classmethod
    def parse(cls, raw: str):
        v = raw.strip().lower()
        for member in cls:
            if member.value.lower() == v:
                return member
        choices = ", ".join(m.value for m in cls)
        raise ValueError(f"invalid {cls.__name__}: {raw} (expected one of: {choices})")

    def __str__(self) -> str:
        return self.value


class Scope(_NamedEnum):
    """部署阶段。

    - `System`：机器级配置，在镜像构建时写入。
    - `DefaultUser`：写入默认用户模板，新建用户时继承。
    - `FirstUser`：仅在新用户首次登录时应用一次。
    - `PerUser`：逐个应用到已存在用户的配置单元。
    """

    SYSTEM = "System"
    DEFAULT_USER = "DefaultUser"
    FIRST_USER = "FirstUser"
    PER_USER = "PerUser"


class Operation(_NamedEnum):
    SET = "Set"
    DELETE = "Delete"
    SET_BYTE = "SetByte"
    SET_BIT = "SetBit"


class ValueType(_NamedEnum):
    STRING = "String"
    EXPAND_STRING = "ExpandString"
    MULTI_STRING = "MultiString"
    DWORD = "DWord"
    QWORD = "QWord"
    BINARY = "Binary"


def format_scopes(scopes) -> str:
    """按枚举定义顺序输出作用域集合，如 `DefaultUser, PerUser`。"""
    return ", ".join(s.value for s in Scope if s in scopes)


@dataclass(frozen=True)
class Entry:
    """一条可序列化的配置条目（反序列化后的原始形态）。

    字段是否必需取决于 `operation`，由 `regscope.apply.validate_entry` 统一校验；
    未识别的 `operation` 以原始字符串保留，在校验阶段报告。
    """

    path: str
    name: str | None = None
    operation: Operation | str = Operation.SET
    value: Any = None
    value_type: ValueType | str | None = None
    offset: Any = None
    bit_index: Any = None
    bit_value: Any = None


# 校验后的条目变体：每种操作只携带、且必须携带自己需要的字段。


@dataclass(frozen=True)
class SetValue:
    path: str
    name: str
    value: Any
    value_type: ValueType


@dataclass(frozen=True)
class DeleteValue:
    path: str
    # `None` 表示删除整个键。
    name: str | None


@dataclass(frozen=True)
class SetByteValue:
    path: str
    name: str
    offset: int
    value: int


@dataclass(frozen=True)
class SetBitValue:
    path: str
    name: str
    offset: int
    bit_index: int
    bit_value: int


ValidEntry = SetValue | DeleteValue | SetByteValue | SetBitValue


@dataclass(frozen=True)
class PatchPlan:
    """对二进制值的单字节替换计划。"""

    offset: int
    byte_value: int


@dataclass(frozen=True)
class ApplyResult:
    """单个条目的执行结果。"""

    entry: Entry
    ok: bool
    error_kind: str | None = None
    reason: str = ""
