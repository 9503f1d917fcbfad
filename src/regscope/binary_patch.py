"""
二进制值的按位 / 按字节修改。

所有函数都是纯函数：不修改传入的缓冲区，也不会扩展其长度；调用方负责把结果写回存储。
"""

from __future__ import annotations

from .errors import (
    InvalidBitIndexError,
    InvalidBitValueError,
    OffsetOutOfRangeError,
    ValidationError,
)
from .types import PatchPlan


def _check_offset(buffer: bytes, offset: int) -> None:
    """偏移必须落在现有缓冲区内；缓冲区不会被自动扩展。"""
    if offset < 0 or offset >= len(buffer):
        raise OffsetOutOfRangeError(
            f"offset {offset} out of range for {len(buffer)}-byte value"
        )


def plan_set_byte(buffer: bytes, offset: int, value: int) -> PatchPlan:
    _check_offset(buffer, offset)
    if not 0 <= value <= 0xFF:
        raise ValidationError(f"byte value must be in 0..255, got {value}")
    return PatchPlan(offset=offset, byte_value=value)


def plan_set_bit(buffer: bytes, offset: int, bit_index: int, bit_value: int) -> PatchPlan:
    """计算把 `offset` 处字节的第 `bit_index` 位（0 为最低位）设为 `bit_value` 后的新字节。"""
    _check_offset(buffer, offset)
    if not 0 <= bit_index <= 7:
        raise InvalidBitIndexError(f"bit index must be in 0..7, got {bit_index}")
    if bit_value not in (0, 1):
        raise InvalidBitValueError(f"bit value must be 0 or 1, got {bit_value}")

    mask = 1 << bit_index
    current = buffer[offset]
    new = (current | mask) if bit_value else (current & ~mask & 0xFF)
    return PatchPlan(offset=offset, byte_value=new)


def apply_plan(buffer: bytes, plan: PatchPlan) -> bytes:
    """按计划替换单个字节，返回新的 `bytes`。"""
    _check_offset(buffer, plan.offset)
    out = bytearray(buffer)
    out[plan.offset] = plan.byte_value
    return bytes(out)


def set_byte(buffer: bytes, offset: int, value: int) -> bytes:
    return apply_plan(buffer, plan_set_byte(buffer, offset, value))


def set_bit(buffer: bytes, offset: int, bit_index: int, bit_value: int) -> bytes:
    return apply_plan(buffer, plan_set_bit(buffer, offset, bit_index, bit_value))
