"""
将条目路径中的根前缀改写到另一个挂载根（例如把 `HKCU` 条目改写到已加载的默认用户配置单元）。
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace

from .errors import InvalidPathError
from .reg_path import SEPARATOR, normalized_segments, parse_key_path
from .types import Entry


def remap_path(path: str, *, source_prefix: str, target_root: str) -> str:
    """改写单个路径；不以 `source_prefix` 开头（整段比较）时原样返回。

    只替换命中的前缀部分，其余部分（大小写、空白、末尾 `\\`）保持原样。
    """
    prefix_segs = normalized_segments(source_prefix)
    segs = normalized_segments(path)
    if segs[: len(prefix_segs)] != prefix_segs:
        return path

    target = target_root.strip()
    if target.endswith(SEPARATOR):
        target = target[:-1]
    body = path.lstrip()
    if body.startswith(SEPARATOR):
        body = body[1:]
    pieces = body.split(SEPARATOR, len(prefix_segs))
    if len(pieces) <= len(prefix_segs):
        return target
    return target + SEPARATOR + pieces[-1]


def remap_entries(
    entries: Iterable[Entry],
    source_prefix: str,
    target_root: str,
) -> list[Entry]:
    """批量改写条目路径，返回新列表；未命中前缀或路径非法的条目原样保留。"""
    # 前缀与目标根本身非法时直接报错，而不是让每个条目都“未命中”。
    normalized_segments(source_prefix)
    parse_key_path(target_root)

    out: list[Entry] = []
    for e in entries:
        try:
            new_path = remap_path(e.path, source_prefix=source_prefix, target_root=target_root)
        except InvalidPathError:
            out.append(e)
            continue
        out.append(e if new_path == e.path else replace(e, path=new_path))
    return out
