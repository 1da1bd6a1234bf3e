"""Tests for target specification parsing."""

import pytest

from imgpipel.core.exceptions import TargetParseError
from imgpipel.core.models import Target
from imgpipel.core.targets import parse_target, parse_targets


class TestParseTarget:
    """Tests for parse_target."""

    def test_parse_target_all_fields(self):
        """Test that every numeric field survives coercion."""
        target = parse_target("large:1.0:1920:1080", 1.0)

        assert target == Target(name="large", quality=1.0, max_width=1920, max_height=1080)
        assert isinstance(target.max_width, int)
        assert isinstance(target.quality, float)

    def test_parse_target_default_quality(self):
        """Test that an omitted quality takes the default."""
        target = parse_target("thumb::100:100", 2.0)

        assert target.name == "thumb"
        assert target.quality == 2.0
        assert target.max_width == 100
        assert target.max_height == 100

    def test_parse_target_no_dimensions(self):
        """Test a recompress-only target."""
        target = parse_target("full:1.0::", 3.0)

        assert target.quality == 1.0
        assert target.max_width is None
        assert target.max_height is None

    def test_parse_target_integer_quality(self):
        """Test that a quality without a decimal point is accepted."""
        assert parse_target("web:2::800", 1.0).quality == 2.0

    @pytest.mark.parametrize(
        "raw,width,height",
        [
            ("w:1.0:640:", 640, None),
            ("h:1.0::480", None, 480),
        ],
    )
    def test_parse_target_single_dimension(self, raw, width, height):
        """Test width-only and height-only targets."""
        target = parse_target(raw, 1.0)

        assert target.max_width == width
        assert target.max_height == height

    @pytest.mark.parametrize(
        "raw",
        [
            "not a valid target",
            "large",
            "large:1.0:1920",
            "large:1.0:1920:1080:5",
            "bad-name:1.0::",
            ":1.0:100:100",
            "large:abc::",
            "large:1.0:-5:",
        ],
    )
    def test_parse_target_grammar_mismatch(self, raw):
        """Test that malformed strings name the expected format."""
        with pytest.raises(TargetParseError) as exc_info:
            parse_target(raw, 1.0)

        assert "name:quality:maxWidth:maxHeight" in str(exc_info.value)
        assert f"`{raw}`" in str(exc_info.value)

    def test_parse_target_field_validation_error(self):
        """Test that a matching string with an out-of-range field reports the field."""
        with pytest.raises(TargetParseError) as exc_info:
            parse_target("huge:30.0::", 1.0)

        message = str(exc_info.value)
        assert "quality" in message
        assert "name:quality:maxWidth:maxHeight" not in message

    def test_parse_target_zero_dimension_rejected(self):
        """Test that a zero bound fails validation on the width field."""
        with pytest.raises(TargetParseError, match="max_width"):
            parse_target("tiny:1.0:0:100", 1.0)

    def test_parsed_target_is_immutable(self):
        """Test that targets cannot be modified after parsing."""
        target = parse_target("large:1.0:1920:1080", 1.0)

        with pytest.raises(Exception):
            target.quality = 5.0


class TestParseTargets:
    """Tests for batch parsing."""

    def test_parse_targets_preserves_order(self):
        """Test that targets come back in declaration order."""
        targets = parse_targets(["thumb::100:100", "full:1.0::"], 1.0)

        assert [target.name for target in targets] == ["thumb", "full"]

    def test_parse_targets_collects_all_errors(self):
        """Test that every bad target is reported, not just the first."""
        with pytest.raises(TargetParseError) as exc_info:
            parse_targets(["oops", "thumb::100:100", "huge:99.0::", "also bad"], 1.0)

        errors = exc_info.value.errors
        assert len(errors) == 3
        assert "`oops`" in errors[0]
        assert "`huge:99.0::`" in errors[1]
        assert "`also bad`" in errors[2]

    def test_parse_targets_duplicate_names(self):
        """Test that target names must be unique."""
        with pytest.raises(TargetParseError, match="already used"):
            parse_targets(["thumb::100:100", "thumb::200:200"], 1.0)

    def test_parse_targets_empty(self):
        """Test that at least one target is required."""
        with pytest.raises(TargetParseError):
            parse_targets([], 1.0)
