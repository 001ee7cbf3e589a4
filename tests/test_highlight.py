"""Tests for the PHP highlighter."""

from phpstan_hub.highlight import KEYWORD_COLOR, PUNCTUATION_COLOR, tokenize_php

SAMPLE = "<?php\n\nclass TestClass\n{\n    public function test()\n    {\n        return $x + 42; // done\n    }\n}\n"


def _by_text(tokens, text):
    return next(t for t in tokens if t["text"] == text)


class TestTokenizePhp:
    def test_tokens_cover_content(self):
        tokens = tokenize_php(SAMPLE)
        assert "".join(t["text"] for t in tokens) == SAMPLE

    def test_token_types_and_colors(self):
        tokens = tokenize_php(SAMPLE)
        assert tokens[0]["type"] == "T_OPEN_TAG"
        assert _by_text(tokens, "class")["type"] == "T_CLASS"
        assert _by_text(tokens, "class")["color"] == KEYWORD_COLOR
        assert _by_text(tokens, "TestClass")["type"] == "T_STRING"
        assert _by_text(tokens, "$x")["type"] == "T_VARIABLE"
        assert _by_text(tokens, "42")["type"] == "T_LNUMBER"
        assert _by_text(tokens, "// done")["type"] == "T_COMMENT"
        assert _by_text(tokens, ";")["type"] == "PUNCTUATION"
        assert _by_text(tokens, ";")["color"] == PUNCTUATION_COLOR

    def test_line_numbers(self):
        tokens = tokenize_php(SAMPLE)
        assert _by_text(tokens, "class")["line"] == 3
        assert _by_text(tokens, "return")["line"] == 7

    def test_multiline_token_split_per_line(self):
        tokens = tokenize_php("<?php\n/**\n * Doc\n */\necho 1;\n")
        doc = [t for t in tokens if t["type"] == "T_DOC_COMMENT"]
        assert [t["text"] for t in doc] == ["/**\n", " * Doc\n", " */"]
        assert [t["line"] for t in doc] == [2, 3, 4]
        assert _by_text(tokens, "echo")["line"] == 5

    def test_inline_html_outside_php(self):
        tokens = tokenize_php("<p>hi</p>\n<?= $name ?>\n")
        assert tokens[0]["type"] == "T_INLINE_HTML"
        assert _by_text(tokens, "<?=")["type"] == "T_OPEN_TAG_WITH_ECHO"
        assert any(t["type"] == "T_CLOSE_TAG" for t in tokens)

    def test_strings(self):
        tokens = tokenize_php("<?php $a = 'x\\'y' . \"z\";")
        strings = [t["text"] for t in tokens if t["type"] == "T_CONSTANT_ENCAPSED_STRING"]
        assert strings == ["'x\\'y'", '"z"']

    def test_empty_content(self):
        assert tokenize_php("") == []
