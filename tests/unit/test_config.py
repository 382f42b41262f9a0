"""
Unit tests for SchemaManagerConfig.
"""

import pytest

from schemashift.config import SchemaManagerConfig


class TestDefaults:
    def test_defaults(self) -> None:
        config = SchemaManagerConfig()
        assert config.dialect == "sqlite"
        assert config.metadata_prefix == "_"
        assert config.shadow_suffix == "_temp"
        assert config.use_transactions
        assert config.isolate_callback_errors
        assert not config.strict_catalog
        assert config.reject_unsafe_not_null

    def test_frozen(self) -> None:
        config = SchemaManagerConfig()
        with pytest.raises(AttributeError):
            config.dialect = "postgresql"  # type: ignore[misc]


class TestValidation:
    """Tests for __post_init__ checks."""

    def test_unknown_dialect(self) -> None:
        with pytest.raises(ValueError, match="dialect must be one of sqlite, postgresql"):
            SchemaManagerConfig(dialect="mysql")  # type: ignore[arg-type]

    def test_empty_metadata_prefix(self) -> None:
        with pytest.raises(ValueError, match="metadata_prefix"):
            SchemaManagerConfig(metadata_prefix="")

    @pytest.mark.parametrize("suffix", ["", "   "])
    def test_blank_shadow_suffix(self, suffix: str) -> None:
        with pytest.raises(ValueError, match="shadow_suffix"):
            SchemaManagerConfig(shadow_suffix=suffix)


class TestSerialization:
    def test_round_trip(self) -> None:
        config = SchemaManagerConfig(dialect="postgresql", strict_catalog=True)
        assert SchemaManagerConfig.from_dict(config.to_dict()) == config

    def test_from_dict_fills_defaults(self) -> None:
        """Missing keys take their defaults."""
        assert SchemaManagerConfig.from_dict({"shadow_suffix": "_new"}) == SchemaManagerConfig(
            shadow_suffix="_new"
        )
