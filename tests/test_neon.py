"""Tests for the NEON codec."""

import pytest

from phpstan_hub import neon
from phpstan_hub.neon import NeonError

PHPSTAN_NEON = """\
includes:
\t- phpstan-baseline.neon

parameters:
\t# analysis strictness
\tlevel: 6
\tpaths:
\t\t- src
\t\t- tests
\teditorUrl: 'phpstorm://open?file=%%file%%&line=%%line%%'
\tignoreErrors:
\t\t-
\t\t\tmessage: '#Call to an undefined method Foo::bar\\(\\)#'
\t\t\tpath: src/Foo.php
\t\t- '#Unsafe usage of new static#'
"""


class TestDecode:
    def test_phpstan_config(self):
        data = neon.decode(PHPSTAN_NEON)
        assert data["includes"] == ["phpstan-baseline.neon"]
        params = data["parameters"]
        assert params["level"] == 6
        assert params["paths"] == ["src", "tests"]
        assert params["editorUrl"] == "phpstorm://open?file=%%file%%&line=%%line%%"
        assert params["ignoreErrors"][0] == {
            "message": "#Call to an undefined method Foo::bar\\(\\)#",
            "path": "src/Foo.php",
        }
        assert params["ignoreErrors"][1] == "#Unsafe usage of new static#"

    def test_space_indentation_and_inline_mapping_items(self):
        content = "parameters:\n    ignoreErrors:\n        - message: 'a'\n          path: b.php\n"
        data = neon.decode(content)
        assert data["parameters"]["ignoreErrors"] == [{"message": "a", "path": "b.php"}]

    def test_inline_collections(self):
        data = neon.decode("paths: [src, tests]\nopts: {a: 1, b: 'x y'}\n")
        assert data == {"paths": ["src", "tests"], "opts": {"a": 1, "b": "x y"}}

    def test_scalars(self):
        data = neon.decode("a: true\nb: no\nc: null\nd: 1.5\ne: max\nf: \"q\\tq\"\ng: 'it''s'\n")
        assert data == {"a": True, "b": False, "c": None, "d": 1.5, "e": "max", "f": "q\tq", "g": "it's"}

    def test_comment_after_value(self):
        assert neon.decode("level: 5 # five\n") == {"level": 5}

    def test_hash_inside_quotes_is_not_a_comment(self):
        assert neon.decode("m: '#foo#'\n") == {"m": "#foo#"}

    def test_empty_document(self):
        assert neon.decode("") is None
        assert neon.decode("# only a comment\n") is None

    def test_key_without_value_is_null(self):
        assert neon.decode("parameters:\n") == {"parameters": None}

    def test_multiline_strings(self):
        content = (
            "parameters:\n"
            "\tbootstrap: '''\n"
            "\t\tline one\n"
            "\t\t  # not a comment\n"
            "\t'''\n"
            "\tnote: \"\"\"\n"
            "\t\tsecond\n"
            "\t\"\"\"\n"
            "\tlevel: 4\n"
        )
        assert neon.decode(content) == {
            "parameters": {"bootstrap": "line one\n  # not a comment", "note": "second", "level": 4}
        }


class TestDecodeErrors:
    def test_bad_indentation(self):
        with pytest.raises(NeonError):
            neon.decode("a: 1\n    b: 2\n")

    def test_missing_colon(self):
        with pytest.raises(NeonError):
            neon.decode("parameters:\n\tlevel\n")

    def test_unterminated_inline_list(self):
        with pytest.raises(NeonError):
            neon.decode("paths: [src, tests\n")

    def test_duplicate_key(self):
        with pytest.raises(NeonError):
            neon.decode("a: 1\na: 2\n")

    @pytest.mark.parametrize("text", ["[a}", "{a: 1]", "{a]}", "paths: [src}", "x: [a, {b: 1]]"])
    def test_mismatched_brackets(self, text):
        with pytest.raises(NeonError):
            neon.decode(text)

    def test_nesting_too_deep(self):
        with pytest.raises(NeonError, match="Nesting too deep"):
            neon.decode("paths: " + "[" * 5000)

    def test_unterminated_multiline_string(self):
        with pytest.raises(NeonError):
            neon.decode("message: '''\n\tnever closed\n")


class TestEncode:
    def test_block_format_with_tabs(self):
        data = {"parameters": {"level": 5, "paths": ["src"]}}
        assert neon.encode(data) == "parameters:\n\tlevel: 5\n\tpaths:\n\t\t- src\n"

    def test_list_of_mappings(self):
        data = {"ignoreErrors": [{"message": "#a b#", "path": "src/A.php"}]}
        assert neon.encode(data) == (
            "ignoreErrors:\n\t-\n\t\tmessage: '#a b#'\n\t\tpath: src/A.php\n"
        )

    def test_strings_that_look_like_other_types_are_quoted(self):
        assert neon.encode({"a": "5", "b": "true", "c": "it's"}) == "a: '5'\nb: 'true'\nc: 'it''s'\n"

    def test_encoded_config_decodes_back(self):
        data = neon.decode(PHPSTAN_NEON)
        assert neon.decode(neon.encode(data)) == data
