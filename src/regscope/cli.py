"""
`regscope` 的命令行入口模块。

子命令：
- `classify`：输出路径对应的部署阶段。
- `filter`：输出批处理文件中对某阶段有效的条目。
- `apply`：筛选、改写路径后把条目应用到存储快照。
- `show`：列出存储快照中的值。
"""

import argparse
import os
from collections.abc import Sequence

from .apply import describe_entry, run_batch, summarize
from .batch_file import load_batch, parse_hex_bytes
from .classify import filter_for_scope, matching_rule
from .errors import InvalidPathError, StoreError
from .remap import remap_entries
from .store import MemoryStore, load_store, save_store
from .types import Entry, Operation, Scope, ValueType, format_scopes


def _split_target(spec: str, flag: str) -> tuple[str, str]:
    """拆分 `KEY@NAME`；`KEY@` 表示默认值（空名称）。"""
    if "@" not in spec:
        raise SystemExit(f"Error: expected KEY_PATH@NAME for {flag}, got: {spec}")
    path, name = spec.rsplit("@", 1)
    if not path:
        raise SystemExit(f"Error: empty KEY_PATH in: {spec}")
    return path, name


def _split_assignment(spec: str, flag: str) -> tuple[str, str, str]:
    """拆分 `KEY@NAME=VALUE`。"""
    if "=" not in spec:
        raise SystemExit(f"Error: expected KEY_PATH@NAME=VALUE for {flag}, got: {spec}")
    target, raw = spec.split("=", 1)
    path, name = _split_target(target, flag)
    return path, name, raw


def _int_arg(raw: str, what: str, spec: str) -> int:
    try:
        return int(raw.strip(), 0)
    except ValueError as e:
        raise SystemExit(f"Error: invalid {what} in: {spec}") from e


def _add_set(entries: list[Entry], spec: str, flag: str, value_type: ValueType) -> None:
    """将一条 `--set*` 参数转换为 `Entry` 并追加到列表。"""
    path, name, raw = _split_assignment(spec, flag)
    value: object = raw
    if value_type in (ValueType.DWORD, ValueType.QWORD):
        value = _int_arg(raw, "integer value", spec)
    elif value_type == ValueType.BINARY:
        try:
            value = parse_hex_bytes(raw)
        except ValueError as e:
            raise SystemExit(f"Error: invalid hex bytes in: {spec}") from e
    entries.append(
        Entry(path=path, name=name, operation=Operation.SET, value=value, value_type=value_type)
    )


def _add_delete(entries: list[Entry], spec: str) -> None:
    if not spec:
        raise SystemExit("Error: missing KEY_PATH for --delete")
    if "@" in spec:
        path, name = _split_target(spec, "--delete")
        entries.append(Entry(path=path, name=name, operation=Operation.DELETE))
    else:
        entries.append(Entry(path=spec, name=None, operation=Operation.DELETE))


def _add_set_byte(entries: list[Entry], spec: str) -> None:
    path, name, raw = _split_assignment(spec, "--set-byte")
    parts = raw.split(":")
    if len(parts) != 2:
        raise SystemExit(f"Error: expected OFFSET:VALUE for --set-byte, got: {spec}")
    entries.append(
        Entry(
            path=path,
            name=name,
            operation=Operation.SET_BYTE,
            offset=_int_arg(parts[0], "offset", spec),
            value=_int_arg(parts[1], "byte value", spec),
        )
    )


def _add_set_bit(entries: list[Entry], spec: str) -> None:
    path, name, raw = _split_assignment(spec, "--set-bit")
    parts = raw.split(":")
    if len(parts) != 3:
        raise SystemExit(f"Error: expected OFFSET:BIT:VALUE for --set-bit, got: {spec}")
    entries.append(
        Entry(
            path=path,
            name=name,
            operation=Operation.SET_BIT,
            offset=_int_arg(parts[0], "offset", spec),
            bit_index=_int_arg(parts[1], "bit index", spec),
            bit_value=_int_arg(parts[2], "bit value", spec),
        )
    )


def _parse_inline_entries(ns: argparse.Namespace) -> list[Entry]:
    """把命令行上的条目参数整理成 `Entry` 序列（按参数组顺序）。"""
    entries: list[Entry] = []
    for spec in ns.set:
        _add_set(entries, spec, "--set", ValueType.STRING)
    for spec in ns.set_expand:
        _add_set(entries, spec, "--set-expand", ValueType.EXPAND_STRING)
    for spec in ns.set_dword:
        _add_set(entries, spec, "--set-dword", ValueType.DWORD)
    for spec in ns.set_qword:
        _add_set(entries, spec, "--set-qword", ValueType.QWORD)
    for spec in ns.set_binary:
        _add_set(entries, spec, "--set-binary", ValueType.BINARY)
    for spec in ns.delete:
        _add_delete(entries, spec)
    for spec in ns.set_byte:
        _add_set_byte(entries, spec)
    for spec in ns.set_bit:
        _add_set_bit(entries, spec)
    return entries


def _parse_remap(spec: str) -> tuple[str, str]:
    if "=" not in spec:
        raise SystemExit(f"Error: expected SOURCE_PREFIX=TARGET_ROOT for --remap, got: {spec}")
    src, dst = spec.split("=", 1)
    if not src or not dst:
        raise SystemExit(f"Error: empty prefix in --remap: {spec}")
    return src, dst


def _parse_scope(raw: str) -> Scope:
    try:
        return Scope.parse(raw)
    except ValueError as e:
        raise SystemExit(f"Error: {e}") from e


def _log_step(message: str) -> None:
    """输出简洁的流程阶段提示。"""
    print(f"[regscope] {message}")


def _abs(p: str) -> str:
    return os.path.abspath(os.path.expanduser(p))


def _load_batches(paths: Sequence[str]) -> list[Entry]:
    entries: list[Entry] = []
    for raw in paths:
        path = _abs(raw)
        if not os.path.isfile(path):
            raise SystemExit(f"Error: batch file not found: {path}")
        try:
            loaded = load_batch(path)
        except ValueError as e:
            # json.JSONDecodeError 与 plistlib.InvalidFileException 均是 ValueError。
            raise SystemExit(f"Error: failed to read batch file {path}: {e}") from e
        _log_step(f"Loaded {len(loaded)} entries from {path}")
        entries.extend(loaded)
    return entries


def _filter_entries(entries: list[Entry], scope: Scope) -> list[Entry]:
    try:
        return filter_for_scope(entries, scope)
    except InvalidPathError as e:
        raise SystemExit(
            f"Error: cannot classify entries for scope {scope}: {e}\n"
            "Hint: fix the entry path, or run without --scope.\n"
        ) from e


def _open_store(path: str) -> MemoryStore:
    if not os.path.isfile(path):
        _log_step(f"Store not found, starting empty: {path}")
        return MemoryStore()
    try:
        return load_store(path)
    except (StoreError, ValueError) as e:
        raise SystemExit(f"Error: failed to read store {path}: {e}") from e


def _format_value(value: object, value_type: ValueType) -> str:
    if value_type == ValueType.BINARY and isinstance(value, (bytes, bytearray)):
        return bytes(value).hex(" ")
    if value_type in (ValueType.DWORD, ValueType.QWORD) and isinstance(value, int):
        return f"0x{value:x} ({value})"
    if isinstance(value, list):
        return " | ".join(str(x) for x in value)
    return str(value)


def _cmd_classify(ns: argparse.Namespace) -> int:
    for path in ns.paths:
        try:
            rule = matching_rule(path)
        except InvalidPathError as e:
            raise SystemExit(f"Error: {e}") from e
        suffix = f"  [{rule.name}]" if ns.verbose else ""
        print(f"{path}: {format_scopes(rule.scopes)}{suffix}")
    return 0


def _cmd_filter(ns: argparse.Namespace) -> int:
    scope = _parse_scope(ns.scope)
    entries = _load_batches(ns.batch)
    kept = _filter_entries(entries, scope)
    _log_step(f"{len(kept)} of {len(entries)} entries valid for {scope}")
    for e in kept:
        print(describe_entry(e))
    return 0


def _cmd_show(ns: argparse.Namespace) -> int:
    store_path = _abs(ns.store)
    if not os.path.isfile(store_path):
        raise SystemExit(f"Error: store not found: {store_path}")
    store = _open_store(store_path)
    try:
        items = list(store.iter_values(ns.prefix or ""))
    except StoreError as e:
        raise SystemExit(f"Error: {e}") from e
    for path, name, value, value_type in items:
        print(f"{path}@{name} = {value_type}:{_format_value(value, value_type)}")
    return 0


def _cmd_apply(ns: argparse.Namespace) -> int:
    """筛选、改写并应用条目，最后写回存储快照。"""
    scope = _parse_scope(ns.scope) if ns.scope else None
    remaps = [_parse_remap(spec) for spec in ns.remap]

    _log_step("Collecting entries")
    entries = _load_batches(ns.batch)
    entries.extend(_parse_inline_entries(ns))
    if not entries:
        raise SystemExit(
            "Error: no entries to apply.\n"
            "Hint: pass --batch FILE or inline flags such as --set KEY_PATH@NAME=VALUE.\n"
        )

    if scope is not None:
        before = len(entries)
        entries = _filter_entries(entries, scope)
        _log_step(f"Scope {scope}: {len(entries)} of {before} entries kept")

    for src, dst in remaps:
        try:
            entries = remap_entries(entries, src, dst)
        except InvalidPathError as e:
            raise SystemExit(f"Error: invalid --remap {src}={dst}: {e}") from e
        _log_step(f"Remapped {src} -> {dst}")

    store_path = _abs(ns.store)
    _log_step(f"Opening store: {store_path}")
    store = _open_store(store_path)
    for prefix in ns.mount:
        try:
            if store.is_mounted(prefix):
                _log_step(f"Already mounted: {prefix}")
                continue
            store.mount(prefix)
        except StoreError as e:
            raise SystemExit(f"Error: failed to mount {prefix}: {e}") from e
        _log_step(f"Mounted: {prefix}")

    if ns.dry_run:
        _log_step("Dry-run mode enabled (store will not be saved)")
        store = store.copy()
    _log_step(f"Applying {len(entries)} entries")
    results = run_batch(entries, store, verbose=bool(ns.verbose))
    applied, failed = summarize(results)

    if not ns.dry_run:
        try:
            save_store(store_path, store)
        except OSError as e:
            raise SystemExit(
                f"Error: failed to write store {store_path}: {e}\n"
                "Hint: check that the directory exists and is writable.\n"
            ) from e

    print("Done:")
    print(f"  Store  : {store_path}")
    print(f"  Applied: {applied}")
    print(f"  Failed : {len(failed)}")
    for r in failed:
        print(f"    {describe_entry(r.entry)}: {r.error_kind}: {r.reason}")
    if ns.dry_run:
        print("  Saved  : no (dry run)")
    return 1 if failed else 0


def _add_entry_flags(parser: argparse.ArgumentParser) -> None:
    """注册内联条目参数。"""
    for flag, metavar, help_text in (
        ("--set", "KEY_PATH@NAME=VALUE", "Set a String value"),
        ("--set-expand", "KEY_PATH@NAME=VALUE", "Set an ExpandString value"),
        ("--set-dword", "KEY_PATH@NAME=VALUE", "Set a DWord value (decimal or 0x hex)"),
        ("--set-qword", "KEY_PATH@NAME=VALUE", "Set a QWord value (decimal or 0x hex)"),
        ("--set-binary", "KEY_PATH@NAME=HEX", "Set a Binary value (e.g. 01:ff:00)"),
        ("--delete", "KEY_PATH[@NAME]", "Delete a value, or the whole key when @NAME is omitted"),
        ("--set-byte", "KEY_PATH@NAME=OFFSET:VALUE", "Replace one byte of a Binary value"),
        ("--set-bit", "KEY_PATH@NAME=OFFSET:BIT:VALUE", "Set one bit (0 = LSB) of a Binary value"),
    ):
        parser.add_argument(flag, action="append", default=[], metavar=metavar, help=help_text)


def build_parser() -> argparse.ArgumentParser:
    """构建并返回 `regscope` 命令行参数解析器。"""
    p = argparse.ArgumentParser(
        prog="regscope",
        formatter_class=argparse.RawTextHelpFormatter,
        description=(
            "Classify registry-style entries into deployment scopes\n"
            "(System / DefaultUser / FirstUser / PerUser) and apply them to a store snapshot."
        ),
    )
    sub = p.add_subparsers(dest="command", required=True)

    c = sub.add_parser("classify", help="Print the deployment scopes of key paths")
    c.add_argument("paths", nargs="+", metavar="KEY_PATH")
    c.add_argument("--verbose", action="store_true", help="Also print the matching rule")
    c.set_defaults(func=_cmd_classify)

    f = sub.add_parser("filter", help="Print batch entries valid for a scope")
    f.add_argument("--scope", required=True, help="System, DefaultUser, FirstUser or PerUser")
    f.add_argument("--batch", action="append", default=[], required=True, metavar="FILE",
                   help="Batch file (.json, or plist for any other extension)")
    f.set_defaults(func=_cmd_filter)

    a = sub.add_parser("apply", help="Apply entries to a store snapshot")
    a.add_argument("--store", required=True, metavar="FILE",
                   help="Store snapshot plist (created when missing)")
    a.add_argument("--batch", action="append", default=[], metavar="FILE",
                   help="Batch file (.json, or plist for any other extension)")
    _add_entry_flags(a)
    a.add_argument("--scope", default="", help="Only apply entries valid for this scope")
    a.add_argument("--remap", action="append", default=[], metavar="SOURCE_PREFIX=TARGET_ROOT",
                   help="Rewrite a path prefix (e.g. HKCU=HKLM\\DefaultUser)")
    a.add_argument("--mount", action="append", default=[], metavar="PREFIX",
                   help="Make a prefix reachable in the store (e.g. HKLM\\DefaultUser)")
    a.add_argument("--dry-run", action="store_true", help="Apply in memory only; do not save")
    a.add_argument("--verbose", action="store_true", help="Print one line per entry")
    a.set_defaults(func=_cmd_apply)

    s = sub.add_parser("show", help="List values in a store snapshot")
    s.add_argument("--store", required=True, metavar="FILE")
    s.add_argument("prefix", nargs="?", default="", metavar="KEY_PATH")
    s.set_defaults(func=_cmd_show)

    return p


def main(argv: Sequence[str] | None = None) -> int:
    """CLI 入口：解析参数并分派到子命令。"""
    parser = build_parser()
    ns = parser.parse_args(argv)
    return ns.func(ns)
