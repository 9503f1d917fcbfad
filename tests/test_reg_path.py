import pytest

from regscope.errors import InvalidPathError
from regscope.reg_path import has_prefix, normalized_segments, parse_key_path


def test_parse_key_path_simple() -> None:
    assert parse_key_path(r"HKCU\Software\Vendor") == ["HKCU", "Software", "Vendor"]


def test_parse_key_path_tolerates_outer_separators() -> None:
    assert parse_key_path(r"\HKLM\SOFTWARE" + "\\") == ["HKLM", "SOFTWARE"]


@pytest.mark.parametrize("bad", ["", "   ", "\\", r"HKCU\\Software", None, 42])
def test_parse_key_path_rejects_malformed(bad) -> None:
    with pytest.raises(InvalidPathError):
        parse_key_path(bad)


def test_normalized_segments_folds_root_aliases_and_case() -> None:
    assert normalized_segments(r"HKEY_CURRENT_USER\Software") == ("hkcu", "software")
    assert normalized_segments(r"HKCU:\SOFTWARE") == ("hkcu", "software")


def test_has_prefix_is_full_segment_and_case_insensitive() -> None:
    assert has_prefix(r"hkcu\software\X", r"HKCU\Software")
    assert has_prefix(r"HKEY_CURRENT_USER\Software", "HKCU")
    assert not has_prefix(r"HKCU\SoftwareX\Y", r"HKCU\Software")
    assert not has_prefix("HKCU", r"HKCU\Software")
