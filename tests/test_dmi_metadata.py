"""Tests for the DMI metadata grammar."""

from __future__ import annotations

import pytest

from dmiharvester.core.errors import MetadataError
from dmiharvester.parsers import dmi_metadata
from dmiharvester.parsers.dmi_types import DmiMetadata, Hotspot, IconState


BASIC = """# BEGIN DMI
version = 4.0
	width = 32
	height = 48
state = "idle"
	dirs = 1
	frames = 1
state = "walk"
	dirs = 4
	frames = 2
	delay = 1,2
# END DMI
"""


def _state_block(**keys) -> str:
    lines = ["# BEGIN DMI", "version = 4.0", 'state = "s"']
    lines += [f"\t{k} = {v}" for k, v in keys.items()]
    lines.append("# END DMI")
    return "\n".join(lines)


class TestParse:
    """Tests for parse()."""

    def test_header(self):
        """Test version and icon size."""
        meta = dmi_metadata.parse(BASIC)
        assert meta.version == "4.0"
        assert (meta.width, meta.height) == (32, 48)

    def test_states_in_order(self):
        """Test states keep declaration order."""
        meta = dmi_metadata.parse(BASIC)
        assert [s.name for s in meta.states] == ["idle", "walk"]
        walk = meta.states[1]
        assert (walk.dirs, walk.frames) == (4, 2)
        assert walk.delays == (1.0, 2.0)
        assert walk.cell_count == 8

    def test_default_icon_size(self):
        """Test width/height default to 32 when omitted."""
        meta = dmi_metadata.parse("# BEGIN DMI\nversion = 4.0\n# END DMI\n")
        assert (meta.width, meta.height) == (32, 32)
        assert meta.states == ()

    def test_default_delays(self):
        """Test a state without delay gets one tick per frame."""
        meta = dmi_metadata.parse(_state_block(frames=3))
        assert meta.states[0].delays == (1.0, 1.0, 1.0)
        assert meta.warnings == ()

    def test_delay_count_mismatch_falls_back(self):
        """Test delay=1,2 with frames=3 falls back to the default delay."""
        meta = dmi_metadata.parse(_state_block(frames=3, delay="1,2"))
        assert meta.states[0].delays == (1.0, 1.0, 1.0)
        assert len(meta.warnings) == 1
        assert "2 delays for 3 frames" in meta.warnings[0]

    def test_fractional_delays(self):
        """Test non-integer tick delays."""
        meta = dmi_metadata.parse(_state_block(frames=2, delay="0.5,1.25"))
        assert meta.states[0].delays == (0.5, 1.25)

    def test_flags(self):
        """Test loop, rewind and movement."""
        meta = dmi_metadata.parse(_state_block(loop=3, rewind=1, movement=0))
        state = meta.states[0]
        assert state.loop == 3
        assert state.rewind is True
        assert state.movement is False

    def test_hotspot(self):
        """Test hotspot = x,y,frame."""
        meta = dmi_metadata.parse(_state_block(frames=2, hotspot="3,7,2"))
        assert meta.states[0].hotspots == (Hotspot(x=3, y=7, frame=2),)

    def test_unknown_keys_ignored(self):
        """Test unknown header and state keys do not fail the parse."""
        text = "# BEGIN DMI\nversion = 4.0\n\tfancy = yes\nstate = \"a\"\n\tglow = 9\n# END DMI\n"
        meta = dmi_metadata.parse(text)
        assert [s.name for s in meta.states] == ["a"]

    def test_quoted_names(self):
        """Test escaped quotes and backslashes in state names."""
        text = '# BEGIN DMI\nversion = 4.0\nstate = "say \\"hi\\" \\\\o/"\nstate = ""\n# END DMI\n'
        meta = dmi_metadata.parse(text)
        assert meta.states[0].name == 'say "hi" \\o/'
        assert meta.states[1].name == ""

    def test_duplicate_names_kept(self):
        """Test a repeated state name yields two states."""
        text = '# BEGIN DMI\nversion = 4.0\nstate = "a"\nstate = "a"\n# END DMI\n'
        assert [s.name for s in dmi_metadata.parse(text).states] == ["a", "a"]

    def test_unparseable_line_is_warning(self):
        """Test a line without '=' only produces a warning."""
        meta = dmi_metadata.parse("# BEGIN DMI\nversion = 4.0\nnonsense here\n# END DMI\n")
        assert len(meta.warnings) == 1


class TestParseErrors:
    """Tests for invalid metadata."""

    def test_missing_version(self):
        with pytest.raises(MetadataError, match="version"):
            dmi_metadata.parse('# BEGIN DMI\nstate = "a"\n# END DMI\n')

    @pytest.mark.parametrize("dirs", ["0", "2", "3", "16"])
    def test_invalid_dirs(self, dirs):
        with pytest.raises(MetadataError, match="dirs"):
            dmi_metadata.parse(_state_block(dirs=dirs))

    def test_zero_frames(self):
        with pytest.raises(MetadataError):
            dmi_metadata.parse(_state_block(frames=0))

    def test_non_numeric_frames(self):
        with pytest.raises(MetadataError, match="integer"):
            dmi_metadata.parse(_state_block(frames="two"))

    def test_negative_delay(self):
        with pytest.raises(MetadataError):
            dmi_metadata.parse(_state_block(frames=2, delay="1,-1"))

    @pytest.mark.parametrize("delay", ["1e999,1", "inf,1", "nan,1"])
    def test_non_finite_delay(self, delay):
        with pytest.raises(MetadataError, match="finite"):
            dmi_metadata.parse(_state_block(frames=2, delay=delay))

    def test_bad_size(self):
        with pytest.raises(MetadataError):
            dmi_metadata.parse("# BEGIN DMI\nversion = 4.0\n\twidth = 0\n# END DMI\n")

    def test_unquoted_state_name(self):
        with pytest.raises(MetadataError, match="quoted"):
            dmi_metadata.parse("# BEGIN DMI\nversion = 4.0\nstate = walk\n# END DMI\n")

    def test_bad_boolean(self):
        with pytest.raises(MetadataError, match="boolean"):
            dmi_metadata.parse(_state_block(rewind="maybe"))

    def test_none(self):
        with pytest.raises(MetadataError):
            dmi_metadata.parse(None)


class TestSerialize:
    """Tests for serialize()."""

    def test_roundtrip(self):
        """Test parse(serialize(m)) == m for a varied file."""
        meta = DmiMetadata(
            version="4.0",
            width=32,
            height=32,
            states=(
                IconState(name="idle", dirs=1, frames=1, delays=(1.0,)),
                IconState(name='say "hi"', dirs=4, frames=3, delays=(1.0, 2.0, 0.5),
                          loop=2, rewind=True),
                IconState(name="run", dirs=8, frames=2, delays=(1.0, 1.0), movement=True,
                          hotspots=(Hotspot(1, 2, 3),)),
            ),
        )
        assert dmi_metadata.parse(dmi_metadata.serialize(meta)) == meta

    def test_defaults_omitted(self):
        """Test default delay and flags are not written."""
        meta = dmi_metadata.parse(_state_block(frames=2))
        text = dmi_metadata.serialize(meta)
        assert "delay" not in text
        assert "loop" not in text
        assert "rewind" not in text
        assert text.startswith("# BEGIN DMI\n")
        assert text.rstrip().endswith("# END DMI")
