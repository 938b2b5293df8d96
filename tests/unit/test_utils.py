"""Tests for small helpers."""

from unittest.mock import patch

import pytest

from pipeboom.utils import macos_version, player_app_name, truncate


class TestTruncate:
    def test_short_text_unchanged(self) -> None:
        assert truncate("hello", 128) == "hello"

    @pytest.mark.parametrize("length", [128, 129, 500])
    def test_long_text_cut_to_limit(self, length: int) -> None:
        assert len(truncate("x" * length, 128)) == 128

    def test_counts_code_points(self) -> None:
        text = "é" * 130 + "🎵" * 10
        result = truncate(text, 128)
        assert len(result) == 128
        assert result == "é" * 128

    def test_multibyte_boundary(self) -> None:
        text = "🎵" * 200
        assert truncate(text, 128) == "🎵" * 128


class TestPlayerAppName:
    @pytest.mark.parametrize(
        "version, expected",
        [((14, 2), "Music"), ((10, 15), "Music"), ((10, 14), "iTunes"), ((10, 9), "iTunes")],
    )
    def test_by_version(self, version, expected: str) -> None:
        with patch("pipeboom.utils.macos_version", return_value=version):
            assert player_app_name() == expected

    def test_unknown_version_defaults_to_music(self) -> None:
        with patch("pipeboom.utils.macos_version", return_value=None):
            assert player_app_name() == "Music"


class TestMacosVersion:
    def test_parses_release(self) -> None:
        with patch("pipeboom.utils.platform.mac_ver", return_value=("13.4.1", ("", "", ""), "arm64")):
            assert macos_version() == (13, 4)

    def test_not_macos(self) -> None:
        with patch("pipeboom.utils.platform.mac_ver", return_value=("", ("", "", ""), "")):
            assert macos_version() is None
