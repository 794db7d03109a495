"""
Tests for room label sanitization.
"""

import pytest

from matrix_backup.sanitization import UNSAFE_FILENAME_PATTERN, sanitize_filename


class TestSanitizeFilename:
    """Tests for sanitize_filename."""

    @pytest.mark.parametrize(
        ("label", "expected"),
        [
            ("", "_"),
            ("filename", "filename"),
            ("file name", "file name"),
            ('fi<l>e:n"a/m\\e|?*#', "fi_l_e_n_a_m_e"),
            ("file\x00name\x1f", "file_name"),
            ("  filename  ", "filename"),
            ("..filename..", "filename"),
            ("__filename__", "filename"),
            ("._ filename _.", "filename"),
            ("file___name", "file_name"),
            ("///\\\\\\", "_"),
            ("世界", "世界"),
            ("valid<invalid>valid", "valid_invalid_valid"),
        ],
    )
    def test_known_labels(self, label: str, expected: str):
        """Known labels map to the expected path segment."""
        assert sanitize_filename(label) == expected

    def test_room_id_colons_replaced(self):
        """Colons never survive, so the label/ID separator stays unambiguous."""
        assert ":" not in sanitize_filename("Team: planning")
        assert sanitize_filename("Team: planning") == "Team_ planning"

    def test_custom_placeholder(self):
        """An empty result falls back to the given placeholder."""
        assert sanitize_filename("...", placeholder="unnamed") == "unnamed"


class TestSanitizeProperties:
    """Properties that must hold for any label."""

    LABELS = [
        "",
        " ",
        "#general",
        "a/b/c",
        "..",
        "_._",
        "Alice & Bob's room",
        "tab\there",
        "emoji 🎉 party",
        "x" * 300,
        "<>:\"/\\|?*#",
        " _ . _ ",
    ]

    @pytest.mark.parametrize("label", LABELS)
    def test_never_empty(self, label: str):
        """Output is always non-empty."""
        assert sanitize_filename(label) != ""

    @pytest.mark.parametrize("label", LABELS)
    def test_idempotent(self, label: str):
        """Sanitizing twice gives the same result as once."""
        once = sanitize_filename(label)
        assert sanitize_filename(once) == once

    @pytest.mark.parametrize("label", LABELS)
    def test_no_unsafe_characters(self, label: str):
        """Output never contains characters from the unsafe set."""
        assert UNSAFE_FILENAME_PATTERN.search(sanitize_filename(label)) is None

    @pytest.mark.parametrize("label", LABELS)
    def test_no_leading_or_trailing_trim_chars(self, label: str):
        """Output (other than the placeholder) has no leading/trailing _ space or dot."""
        result = sanitize_filename(label)
        if result != "_":
            assert result[0] not in "_ ." and result[-1] not in "_ ."
