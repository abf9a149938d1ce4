"""
Unit tests for the response tokenizer.
"""

from core.tokenizer import ArrayEndToken, MessageEndToken, ValueToken, scalar_text, tokenize


class TestScalarText:
    """JSON scalars render the way the field handlers expect."""

    def test_booleans_and_null(self):
        assert scalar_text(True) == "true"
        assert scalar_text(False) == "false"
        assert scalar_text(None) == ""

    def test_numbers_and_strings(self):
        assert scalar_text(205.3) == "205.3"
        assert scalar_text(7) == "7"
        assert scalar_text("idle") == "idle"


class TestTokenize:
    """Tests for tokenize()."""

    def test_flat_object(self):
        tokens = tokenize('{"key":"heat","flags":"v"}')
        assert tokens == [
            ValueToken("key", [], "heat"),
            ValueToken("flags", [], "v"),
            MessageEndToken(),
        ]

    def test_array_of_objects(self):
        tokens = tokenize('{"result":{"heaters":[{"current":20.5},{"current":205.3}]}}')
        assert tokens == [
            ValueToken("result:heaters^:current", [0], "20.5"),
            ValueToken("result:heaters^:current", [1], "205.3"),
            ArrayEndToken("result:heaters^", [2]),
            MessageEndToken(),
        ]

    def test_array_of_scalars(self):
        tokens = tokenize('{"result":{"bedHeaters":[0,-1]}}')
        assert tokens[:3] == [
            ValueToken("result:bedHeaters^", [0], "0"),
            ValueToken("result:bedHeaters^", [1], "-1"),
            ArrayEndToken("result:bedHeaters^", [2]),
        ]

    def test_nested_arrays_carry_both_indices(self):
        tokens = tokenize('{"result":[{"number":0,"heaters":[1]}]}')
        assert ValueToken("result^:heaters^", [0, 0], "1") in tokens
        assert ArrayEndToken("result^:heaters^", [0, 1]) in tokens
        assert ArrayEndToken("result^", [1]) in tokens

    def test_empty_array_reports_zero_length(self):
        tokens = tokenize('{"result":[{"number":0,"extruders":[]}]}')
        assert ArrayEndToken("result^:extruders^", [0, 0]) in tokens

    def test_top_level_result_array(self):
        """A keyed reply for an array subsystem has result^ paths."""
        tokens = tokenize('{"key":"tools","result":[{"number":0},{"number":2}]}')
        values = [t for t in tokens if isinstance(t, ValueToken)]
        assert values[1:] == [
            ValueToken("result^:number", [0], "0"),
            ValueToken("result^:number", [1], "2"),
        ]

    def test_message_end_is_last(self):
        tokens = tokenize('{"resp":"ok"}')
        assert isinstance(tokens[-1], MessageEndToken)

    def test_non_json_line_yields_nothing(self):
        assert tokenize("ok") == []
        assert tokenize('{"broken":') == []

    def test_non_object_json_yields_nothing(self):
        assert tokenize("[1,2,3]") == []
        assert tokenize("42") == []
