"""
按路径判定配置条目可用的部署阶段（`Scope`），并据此筛选条目。

规则按 `CLASSIFICATION_RULES` 的顺序求值：
1) 路径含 `Policies` 段：仅 `System`，机器级策略不能迁入用户模板。
2) 末段为 `Run` / `RunOnce`：所有用户阶段，自启动项需跨阶段保留。
3) 使用历史（MRU、UserAssist 等）：仅 `FirstUser`，不烘焙进默认模板。
4) 打包应用（AppX、Packages 等）状态：仅 `FirstUser`，避免破坏镜像泛化。
5) 其余：`DefaultUser` 与 `PerUser`。
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass

from .reg_path import normalized_segments
from .types import Entry, Scope

Segments = tuple[str, ...]

_AUTOSTART_KEYS = frozenset({"run", "runonce"})

_HISTORY_KEYS = frozenset(
    {
        "userassist",
        "recentdocs",
        "typedpaths",
        "typedurls",
        "wordwheelquery",
        "comdlg32",
    }
)

_PACKAGED_APP_KEYS = frozenset(
    {
        "packages",
        "applicationassociationtoasts",
        "appmodel",
        "appcontainer",
    }
)


@dataclass(frozen=True)
class ClassificationRule:
    """一条分类规则：命中 `predicate` 时给出 `scopes`。"""

    name: str
    predicate: Callable[[Segments], bool]
    scopes: frozenset[Scope]
    terminal: bool = True


def _is_policy_path(segs: Segments) -> bool:
    return "policies" in segs


def _is_autostart_path(segs: Segments) -> bool:
    return segs[-1] in _AUTOSTART_KEYS


def _is_history_segment(seg: str) -> bool:
    # `RunMRU`、`OpenSavePidlMRU`、`MRUList` 等统一按 MRU 处理。
    return seg in _HISTORY_KEYS or seg.startswith("mru") or seg.endswith("mru")


def _is_history_path(segs: Segments) -> bool:
    return any(_is_history_segment(s) for s in segs)


def _is_packaged_app_path(segs: Segments) -> bool:
    # `Classes\AppX4hxtad77fb...` 这类 ProgID 以 AppX 开头。
    return any(s in _PACKAGED_APP_KEYS or s.startswith("appx") for s in segs)


CLASSIFICATION_RULES: tuple[ClassificationRule, ...] = (
    ClassificationRule(
        name="policies",
        predicate=_is_policy_path,
        scopes=frozenset({Scope.SYSTEM}),
    ),
    ClassificationRule(
        name="autostart",
        predicate=_is_autostart_path,
        scopes=frozenset({Scope.DEFAULT_USER, Scope.FIRST_USER, Scope.PER_USER}),
    ),
    ClassificationRule(
        name="usage-history",
        predicate=_is_history_path,
        scopes=frozenset({Scope.FIRST_USER}),
    ),
    ClassificationRule(
        name="packaged-app",
        predicate=_is_packaged_app_path,
        scopes=frozenset({Scope.FIRST_USER}),
    ),
    ClassificationRule(
        name="fallback",
        predicate=lambda _segs: True,
        scopes=frozenset({Scope.DEFAULT_USER, Scope.PER_USER}),
        terminal=False,
    ),
)


def matching_rule(
    path: str,
    rules: Sequence[ClassificationRule] = CLASSIFICATION_RULES,
) -> ClassificationRule:
    """返回决定 `path` 分类结果的规则；路径非法时抛出 `InvalidPathError`。"""
    segs = normalized_segments(path)
    provisional: ClassificationRule | None = None
    for rule in rules:
        if not rule.predicate(segs):
            continue
        if rule.terminal:
            return rule
        if provisional is None:
            provisional = rule
    if provisional is None:
        raise RuntimeError(f"no classification rule matched: {path}")
    return provisional


def classify_path(
    path: str,
    rules: Sequence[ClassificationRule] = CLASSIFICATION_RULES,
) -> frozenset[Scope]:
    """将路径映射为可用的部署阶段集合。"""
    return matching_rule(path, rules).scopes


def classify_entries(entries: Iterable[Entry]) -> list[tuple[Entry, frozenset[Scope]]]:
    """为每个条目附上分类结果，保持输入顺序。"""
    return [(e, classify_path(e.path)) for e in entries]


def filter_for_scope(entries: Iterable[Entry], scope: Scope) -> list[Entry]:
    """筛选出在 `scope` 阶段有效的条目，保持输入顺序，不修改条目。"""
    return [e for e in entries if scope in classify_path(e.path)]
