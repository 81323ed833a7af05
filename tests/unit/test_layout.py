"""Tests for channel layouts."""

import pytest

from eegclean.core.exceptions import FormatError
from eegclean.core.layout import ChannelLayout


class TestChannelLayout:
    """Test ChannelLayout construction."""

    def test_biosemi32(self, layout):
        """Test the reference deployment layout."""
        assert layout.n_channels == 32
        assert layout.reference == ("T7", "T8")
        assert layout.reference_indices == (6, 23)
        assert set(layout.positions) == set(layout.ch_names)

    def test_from_file(self, tmp_path):
        """Test reading positions from a montage file."""
        path = tmp_path / "cap.sfp"
        path.write_text(
            "Fz 0.0 0.07 0.08\n"
            "Cz 0.0 0.0 0.1\n"
            "Pz 0.0 -0.07 0.08\n"
            "T7 -0.09 0.0 0.0\n"
            "T8 0.09 0.0 0.0\n"
        )

        layout = ChannelLayout.from_file(path, reference=("T7", "T8"))

        assert layout.ch_names == ("Fz", "Cz", "Pz", "T7", "T8")
        assert layout.reference_indices == (3, 4)

    def test_unknown_reference(self, tmp_path):
        path = tmp_path / "cap.sfp"
        path.write_text("Fz 0.0 0.07 0.08\nCz 0.0 0.0 0.1\n")

        with pytest.raises(FormatError, match="Reference channels"):
            ChannelLayout.from_file(path, reference=("T7", "T8"))
