"""
抽象键值存储协议，以及用于测试与 CLI 的内存实现。

设计原则：
- 键名与值名大小写不敏感、保留原始大小写；默认值使用空名称 `""`。
- 只有已挂载的前缀可达，挂载 / 卸载即配置单元的加载 / 卸载。
- 设置值时按需创建中间键；删除采用尽力而为策略（不存在时忽略）。
"""

from __future__ import annotations

import copy
import plistlib
from collections.abc import Iterator
from typing import Any, Protocol

from .errors import InvalidPathError, StoreError
from .reg_path import join_key_path, normalized_segments, parse_key_path
from .types import ValueType

DEFAULT_ROOTS = ("HKLM", "HKCU")


class KeyValueStore(Protocol):
    """条目执行器依赖的最小存储接口。"""

    def get(self, path: str, name: str) -> tuple[Any, ValueType] | None: ...

    def set(self, path: str, name: str, value: Any, value_type: ValueType) -> None: ...

    def delete(self, path: str, name: str | None = None) -> None: ...


def _new_key(name: str) -> dict:
    return {"name": name, "values": {}, "keys": {}}


class MemoryStore:
    """以嵌套字典保存的键树。"""

    def __init__(self, roots: tuple[str, ...] = DEFAULT_ROOTS) -> None:
        # 规范化前缀 -> (原始前缀, 键树)
        self._mounts: dict[tuple[str, ...], tuple[str, dict]] = {}
        for root in roots:
            self.mount(root)

    # -- 挂载 ---------------------------------------------------------------

    def mount(self, prefix: str, tree: dict | None = None) -> None:
        """使 `prefix` 可达；`tree` 为空时挂载一个空键。"""
        segs = self._segments(prefix)
        if segs in self._mounts:
            raise StoreError(f"already mounted: {prefix}")
        parts = parse_key_path(prefix)
        self._mounts[segs] = (join_key_path(parts), tree if tree is not None else _new_key(parts[-1]))

    def unmount(self, prefix: str) -> dict:
        """卸载 `prefix` 并返回其键树。"""
        segs = self._segments(prefix)
        if segs not in self._mounts:
            raise StoreError(f"not mounted: {prefix}")
        _display, tree = self._mounts.pop(segs)
        return tree

    def is_mounted(self, prefix: str) -> bool:
        return self._segments(prefix) in self._mounts

    def mounts(self) -> list[str]:
        return sorted(display for display, _tree in self._mounts.values())

    def is_reachable(self, path: str) -> bool:
        try:
            self._resolve(path)
        except StoreError:
            return False
        return True

    # -- 键值操作 -------------------------------------------------------------

    def get(self, path: str, name: str) -> tuple[Any, ValueType] | None:
        key = self._find_key(path)
        if key is None:
            return None
        item = key["values"].get(name.lower())
        if item is None:
            return None
        return item["data"], ValueType.parse(item["type"])

    def set(self, path: str, name: str, value: Any, value_type: ValueType) -> None:
        tree, rest = self._resolve(path)
        cur = tree
        for part in rest:
            k = part.lower()
            if k not in cur["keys"]:
                cur["keys"][k] = _new_key(part)
            cur = cur["keys"][k]
        cur["values"][name.lower()] = {
            "name": name,
            "type": ValueType.parse(str(value_type)).value,
            "data": value,
        }

    def delete(self, path: str, name: str | None = None) -> None:
        """删除值，或在 `name` 为 `None` 时删除整个键；目标不存在时静默跳过。"""
        tree, rest = self._resolve(path)
        if name is not None:
            key = self._walk(tree, rest)
            if key is not None:
                key["values"].pop(name.lower(), None)
            return

        if not rest:
            # 挂载点本身保持挂载，仅清空内容。
            tree["values"].clear()
            tree["keys"].clear()
            return
        parent = self._walk(tree, rest[:-1])
        if parent is not None:
            parent["keys"].pop(rest[-1].lower(), None)

    def iter_values(self, prefix: str = "") -> Iterator[tuple[str, str, Any, ValueType]]:
        """按路径顺序遍历 `(path, name, value, type)`；`prefix` 非空时只遍历其下内容。"""
        want = self._segments(prefix) if prefix else ()
        for segs in sorted(self._mounts):
            display, tree = self._mounts[segs]
            for item in self._iter_key(display, tree):
                if normalized_segments(item[0])[: len(want)] == want:
                    yield item

    def snapshot(self) -> list[dict]:
        """返回可序列化的挂载列表 `[{"prefix": ..., "tree": ...}]`。"""
        return [
            {"prefix": self._mounts[segs][0], "tree": self._mounts[segs][1]}
            for segs in sorted(self._mounts)
        ]

    def copy(self) -> MemoryStore:
        """返回与当前存储互不影响的深拷贝（用于 dry run）。"""
        clone = MemoryStore(roots=())
        clone._mounts = copy.deepcopy(self._mounts)
        return clone

    # -- 内部辅助 -------------------------------------------------------------

    @staticmethod
    def _segments(path: str) -> tuple[str, ...]:
        try:
            return normalized_segments(path)
        except InvalidPathError as e:
            raise StoreError(str(e)) from e

    def _resolve(self, path: str) -> tuple[dict, list[str]]:
        """返回最长匹配挂载点的键树，以及挂载点以下的剩余段。"""
        segs = self._segments(path)
        for n in range(len(segs), 0, -1):
            mounted = self._mounts.get(segs[:n])
            if mounted is not None:
                return mounted[1], parse_key_path(path)[n:]
        raise StoreError(f"path is not under a mounted root: {path}")

    @staticmethod
    def _walk(tree: dict, parts: list[str]) -> dict | None:
        cur = tree
        for part in parts:
            cur = cur["keys"].get(part.lower())
            if cur is None:
                return None
        return cur

    def _find_key(self, path: str) -> dict | None:
        tree, rest = self._resolve(path)
        return self._walk(tree, rest)

    def _iter_key(self, path: str, key: dict) -> Iterator[tuple[str, str, Any, ValueType]]:
        for lower in sorted(key["values"]):
            item = key["values"][lower]
            yield path, item["name"], item["data"], ValueType.parse(item["type"])
        for lower in sorted(key["keys"]):
            child = key["keys"][lower]
            yield from self._iter_key(f"{path}\\{child['name']}", child)


def load_store(path: str) -> MemoryStore:
    """从磁盘读取存储快照（自动识别 XML/Binary plist）。"""
    with open(path, "rb") as f:
        obj = plistlib.load(f)
    mounts = obj.get("mounts") if isinstance(obj, dict) else None
    if not isinstance(mounts, list):
        raise StoreError(f"not a store snapshot: {path}")

    store = MemoryStore(roots=())
    for item in mounts:
        if not isinstance(item, dict) or not isinstance(item.get("tree"), dict):
            raise StoreError(f"invalid mount record in store snapshot: {path}")
        store.mount(str(item.get("prefix", "")), item["tree"])
    return store


def save_store(path: str, store: MemoryStore) -> None:
    """将存储快照以二进制 plist 格式写回磁盘。"""
    data = plistlib.dumps({"mounts": store.snapshot()}, fmt=plistlib.FMT_BINARY, sort_keys=False)
    with open(path, "wb") as f:
        f.write(data)
