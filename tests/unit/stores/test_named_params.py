"""
Unit tests for to_named_params.
"""

import pytest

from schemashift.stores import to_named_params


class TestToNamedParams:
    def test_positional_to_named(self) -> None:
        sql, params = to_named_params("SELECT * FROM t WHERE a = ? AND b = ?", [1, "x"])
        assert sql == "SELECT * FROM t WHERE a = :p0 AND b = :p1"
        assert params == {"p0": 1, "p1": "x"}

    def test_question_marks_in_literals_kept(self) -> None:
        """Only unquoted question marks are placeholders."""
        sql, params = to_named_params("SELECT 'why?' FROM \"t?\" WHERE a = ?", [1])
        assert sql == "SELECT 'why?' FROM \"t?\" WHERE a = :p0"
        assert params == {"p0": 1}

    def test_colons_escaped(self) -> None:
        """Colons that text() would read as binds are escaped."""
        sql, _ = to_named_params("SELECT '12:30', x::text FROM t", [])
        assert sql == "SELECT '12\\:30', x:\\:text FROM t"

    def test_escaped_quote_inside_literal(self) -> None:
        sql, params = to_named_params("SELECT 'it''s?' WHERE a = ?", [5])
        assert sql == "SELECT 'it''s?' WHERE a = :p0"
        assert params == {"p0": 5}

    def test_too_few_parameters(self) -> None:
        with pytest.raises(ValueError, match="more placeholders"):
            to_named_params("SELECT ?, ?", [1])

    def test_too_many_parameters(self) -> None:
        with pytest.raises(ValueError, match="1 placeholder"):
            to_named_params("SELECT ?", [1, 2])
