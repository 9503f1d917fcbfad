import plistlib

import pytest

from regscope.errors import StoreError
from regscope.store import MemoryStore, load_store, save_store
from regscope.types import ValueType


def test_set_creates_keys_and_get_is_case_insensitive() -> None:
    store = MemoryStore()
    store.set(r"HKCU\Software\Vendor", "Level", 3, ValueType.DWORD)
    assert store.get(r"hkcu\SOFTWARE\vendor", "level") == (3, ValueType.DWORD)
    assert store.get(r"HKEY_CURRENT_USER\Software\Vendor", "Level") == (3, ValueType.DWORD)


def test_get_missing_returns_none() -> None:
    store = MemoryStore()
    assert store.get(r"HKCU\Software\Nope", "X") is None
    store.set(r"HKCU\Software\Vendor", "A", "v", ValueType.STRING)
    assert store.get(r"HKCU\Software\Vendor", "B") is None


def test_set_overwrites_value_and_type() -> None:
    store = MemoryStore()
    store.set(r"HKCU\Software\Vendor", "A", "v", ValueType.STRING)
    store.set(r"HKCU\Software\Vendor", "a", b"\x01", ValueType.BINARY)
    assert store.get(r"HKCU\Software\Vendor", "A") == (b"\x01", ValueType.BINARY)


def test_delete_value_and_key_is_idempotent() -> None:
    store = MemoryStore()
    store.set(r"HKCU\Software\Vendor\Sub", "A", "v", ValueType.STRING)
    store.set(r"HKCU\Software\Vendor", "B", "v", ValueType.STRING)

    store.delete(r"HKCU\Software\Vendor", "B")
    store.delete(r"HKCU\Software\Vendor", "B")
    assert store.get(r"HKCU\Software\Vendor", "B") is None

    store.delete(r"HKCU\Software\Vendor")
    store.delete(r"HKCU\Software\Vendor")
    store.delete(r"HKCU\Software\Missing\Deeper")
    assert store.get(r"HKCU\Software\Vendor\Sub", "A") is None


def test_unmounted_paths_are_unreachable() -> None:
    store = MemoryStore()
    assert not store.is_reachable(r"HKU\S-1-5-21\Software")
    with pytest.raises(StoreError):
        store.set(r"HKU\S-1-5-21\Software", "A", "v", ValueType.STRING)
    with pytest.raises(StoreError):
        store.get(r"HKU\S-1-5-21\Software", "A")


def test_mount_and_unmount_change_reachability() -> None:
    store = MemoryStore()
    store.mount(r"HKU\DefaultUser")
    store.set(r"HKU\DefaultUser\Software\Vendor", "A", "v", ValueType.STRING)
    assert store.is_mounted(r"hku\defaultuser")
    with pytest.raises(StoreError):
        store.mount(r"HKU\DefaultUser")

    tree = store.unmount(r"HKU\DefaultUser")
    assert "software" in tree["keys"]
    assert not store.is_reachable(r"HKU\DefaultUser\Software")

    store.mount(r"HKU\DefaultUser", tree)
    assert store.get(r"HKU\DefaultUser\Software\Vendor", "A") == ("v", ValueType.STRING)


def test_nested_mount_uses_longest_prefix() -> None:
    store = MemoryStore()
    store.mount(r"HKLM\DefaultUser")
    store.set(r"HKLM\DefaultUser\Software", "A", "hive", ValueType.STRING)
    store.unmount(r"HKLM\DefaultUser")
    # The value lived in the mounted hive, not in the HKLM tree.
    assert store.get(r"HKLM\DefaultUser\Software", "A") is None


def test_deleting_mount_root_clears_but_keeps_mount() -> None:
    store = MemoryStore()
    store.set(r"HKCU\Software", "A", "v", ValueType.STRING)
    store.delete("HKCU")
    assert store.is_mounted("HKCU")
    assert list(store.iter_values("HKCU")) == []


def test_iter_values_lists_values_under_prefix() -> None:
    store = MemoryStore()
    store.set(r"HKCU\Software\B", "", "default", ValueType.STRING)
    store.set(r"HKCU\Software\A", "X", 1, ValueType.DWORD)
    store.set(r"HKLM\Software\C", "Y", ["a", "b"], ValueType.MULTI_STRING)

    assert list(store.iter_values(r"HKCU\Software")) == [
        (r"HKCU\Software\A", "X", 1, ValueType.DWORD),
        (r"HKCU\Software\B", "", "default", ValueType.STRING),
    ]
    assert len(list(store.iter_values())) == 3


def test_snapshot_round_trip(tmp_path) -> None:
    store = MemoryStore()
    store.mount(r"HKU\Tmp")
    store.set(r"HKCU\Software\Vendor", "Flags", b"\x00\xff", ValueType.BINARY)
    store.set(r"HKU\Tmp\Software", "Big", (1 << 64) - 1, ValueType.QWORD)
    path = tmp_path / "store.plist"

    save_store(str(path), store)
    loaded = load_store(str(path))

    assert loaded.mounts() == ["HKCU", "HKLM", r"HKU\Tmp"]
    assert loaded.get(r"HKCU\Software\Vendor", "Flags") == (b"\x00\xff", ValueType.BINARY)
    assert loaded.get(r"HKU\Tmp\Software", "Big") == ((1 << 64) - 1, ValueType.QWORD)


def test_copy_is_independent_of_original() -> None:
    store = MemoryStore()
    store.mount(r"HKU\Tmp")
    store.set(r"HKCU\Software\Vendor", "A", "old", ValueType.STRING)

    clone = store.copy()
    clone.set(r"HKCU\Software\Vendor", "A", "new", ValueType.STRING)
    clone.set(r"HKU\Tmp\Software", "B", 1, ValueType.DWORD)
    clone.unmount("HKLM")

    assert clone.get(r"HKCU\Software\Vendor", "A") == ("new", ValueType.STRING)
    assert store.get(r"HKCU\Software\Vendor", "A") == ("old", ValueType.STRING)
    assert store.get(r"HKU\Tmp\Software", "B") is None
    assert store.mounts() == ["HKCU", "HKLM", r"HKU\Tmp"]
    assert clone.mounts() == ["HKCU", r"HKU\Tmp"]


def test_load_store_rejects_other_plists(tmp_path) -> None:
    path = tmp_path / "other.plist"
    path.write_bytes(plistlib.dumps({"Settings": {"A": 1}}))
    with pytest.raises(StoreError):
        load_store(str(path))
