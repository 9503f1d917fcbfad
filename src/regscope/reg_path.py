from __future__ import annotations

from .errors import InvalidPathError

SEPARATOR = "\\"

# 长根名与短别名等价，比较时统一使用短别名。
_ROOT_ALIASES = {
    "hkey_local_machine": "hklm",
    "hkey_current_user": "hkcu",
    "hkey_users": "hku",
    "hkey_classes_root": "hkcr",
    "hkey_current_config": "hkcc",
}


def parse_key_path(key_path: str) -> list[str]:
    """
    将注册表风格路径解析为键名序列（保留原始大小写）。

    语法说明：
    - `HKCU\\Software\\X` 表示根 `HKCU` -> `Software` -> `X`。
    - 允许一个前导或末尾的 `\\`。
    - 根段可写作驱动器形式 `HKCU:`，比较时忽略冒号。
    """
    if not isinstance(key_path, str):
        raise InvalidPathError(f"key path must be a string, got {type(key_path).__name__}")
    s = key_path.strip()
    if s.startswith(SEPARATOR):
        s = s[1:]
    if s.endswith(SEPARATOR):
        s = s[:-1]
    if not s:
        raise InvalidPathError("empty key path")
    parts = s.split(SEPARATOR)
    for p in parts:
        if not p.strip():
            raise InvalidPathError(f"invalid key path: {key_path}")
    return parts


def segment_key(segment: str, *, is_root: bool = False) -> str:
    """返回用于比较的段：小写；根段去掉驱动器冒号并折叠长根名。"""
    v = segment.strip().lower()
    if is_root:
        if v.endswith(":"):
            v = v[:-1]
        v = _ROOT_ALIASES.get(v, v)
    return v


def normalized_segments(key_path: str) -> tuple[str, ...]:
    """解析路径并返回可直接比较的段元组。"""
    parts = parse_key_path(key_path)
    return tuple(segment_key(p, is_root=(i == 0)) for i, p in enumerate(parts))


def has_prefix(key_path: str, prefix: str) -> bool:
    """判断 `key_path` 是否以 `prefix` 开头（整段比较，大小写不敏感）。

    `HKCU\\SoftwareX` 不以 `HKCU\\Software` 开头。
    """
    path_segs = normalized_segments(key_path)
    prefix_segs = normalized_segments(prefix)
    return path_segs[: len(prefix_segs)] == prefix_segs


def join_key_path(parts: list[str]) -> str:
    return SEPARATOR.join(parts)
