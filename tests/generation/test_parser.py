"""Tests for recovery-oriented response parsing."""

import json

import pytest

from quizgen.errors import ParseError
from quizgen.generation.parser import (
    ResponseParser,
    escape_string_newlines,
    extract_json_candidate,
    extract_questions,
    find_json_end,
    repair_json,
)


@pytest.fixture
def parser():
    """Fixture providing a response parser."""
    return ResponseParser()


class TestParse:
    """Tests for ResponseParser.parse()."""

    def test_plain_json(self, parser, questions_json):
        """Test parsing a clean JSON object."""
        questions = parser.parse(questions_json)

        assert len(questions) == 2
        assert questions[0]["type"] == "mc"

    def test_fenced_code_block(self, parser, questions_json):
        """Test that JSON inside a markdown fence is extracted."""
        raw = f"Here are your questions:\n```json\n{questions_json}\n```\nEnjoy!"
        assert len(parser.parse(raw)) == 2

    def test_untagged_fence(self, parser, questions_json):
        """Test that a fence without a language tag is extracted."""
        assert len(parser.parse(f"```\n{questions_json}\n```")) == 2

    def test_leading_and_trailing_chatter(self, parser):
        """Test that text around the object is ignored."""
        raw = 'Sure! {"questions": [{"stem": "Q?", "type": "mc"}]} Let me know if...'
        assert parser.parse(raw) == [{"stem": "Q?", "type": "mc"}]

    def test_trailing_garbage_with_braces(self, parser):
        """Test that the object is bounded at its matching close brace."""
        raw = '{"questions": [{"stem": "Q1", "type": "tf"}]}\n{"note": "extra"}'
        assert parser.parse(raw) == [{"stem": "Q1", "type": "tf"}]

    def test_brace_inside_string(self, parser):
        """Test that braces inside strings do not end the object early."""
        raw = '{"questions": [{"stem": "Which set is {1, 2}?", "type": "mc"}]} trailing'
        assert parser.parse(raw)[0]["stem"] == "Which set is {1, 2}?"

    def test_escaped_quote_inside_string(self, parser):
        """Test that escaped quotes do not toggle string state."""
        raw = '{"questions": [{"stem": "Say \\"}\\" twice", "type": "mc"}]}'
        assert parser.parse(raw)[0]["stem"] == 'Say "}" twice'

    def test_trailing_comma_repaired(self, parser):
        """Test that trailing commas are removed."""
        raw = '{"questions": [{"stem": "Q1", "type": "mc",},]}'
        assert parser.parse(raw) == [{"stem": "Q1", "type": "mc"}]

    def test_raw_newline_in_string_repaired(self, parser):
        """Test that raw newlines inside strings are escaped."""
        raw = '{"questions": [{"stem": "Line one\nline two", "type": "mc"}]}'
        assert parser.parse(raw)[0]["stem"] == "Line one\nline two"

    def test_single_quotes_repaired(self, parser):
        """Test that single-quoted JSON is converted when no double quotes exist."""
        raw = "{'questions': [{'stem': 'Q1', 'type': 'tf'}]}"
        assert parser.parse(raw) == [{"stem": "Q1", "type": "tf"}]

    def test_bare_array(self, parser):
        """Test that a bare array of questions is accepted."""
        raw = '[{"question": "Q1", "type": "mc"}, {"question": "Q2", "type": "mc"}]'
        assert len(parser.parse(raw)) == 2

    def test_unparseable_reports_preview(self, parser):
        """Test that unrecoverable text raises json_error with a preview."""
        raw = "{not json at all" + "x" * 1000

        with pytest.raises(ParseError) as exc_info:
            parser.parse(raw)

        error = exc_info.value
        assert error.code == "json_error"
        assert error.data["response_preview"] == raw[:500]
        assert error.data["json_error"]

    def test_bracketed_prose_before_object(self, parser, mc_question):
        """Test that a leading bracketed note is skipped to reach the object."""
        raw = "[Note] Here are your questions:\n" + json.dumps({"questions": [mc_question]})

        questions = parser.parse(raw)

        assert questions == [mc_question]

    def test_no_json_at_all(self, parser):
        """Test that prose without JSON raises json_error."""
        with pytest.raises(ParseError) as exc_info:
            parser.parse("I cannot help with that.")
        assert exc_info.value.code == "json_error"

    def test_empty_question_list(self, parser):
        """Test that an empty question list raises no_questions."""
        with pytest.raises(ParseError) as exc_info:
            parser.parse('{"questions": []}')
        assert exc_info.value.code == "no_questions"

    def test_unrecognized_shape(self, parser):
        """Test that JSON without a question list raises invalid_format."""
        with pytest.raises(ParseError) as exc_info:
            parser.parse('{"title": "Quiz", "count": 3}')

        assert exc_info.value.code == "invalid_format"
        assert exc_info.value.data["data_keys"] == ["title", "count"]


class TestExtractQuestions:
    """Tests for locating the question list."""

    def test_nested_quiz(self):
        """Test the quiz.questions shape."""
        data = {"quiz": {"questions": [{"stem": "Q"}]}}
        assert extract_questions(data) == [{"stem": "Q"}]

    def test_nested_data(self):
        """Test the data.questions shape."""
        data = {"data": {"questions": [{"stem": "Q"}]}}
        assert extract_questions(data) == [{"stem": "Q"}]

    def test_any_list_with_stems(self):
        """Test the fallback to any top-level list of stem objects."""
        data = {"meta": "x", "items": [{"question": "Q"}]}
        assert extract_questions(data) == [{"question": "Q"}]

    def test_fallback_requires_stem_marker(self):
        """Test that a list of objects with only a type is not a question list."""
        with pytest.raises(ParseError):
            extract_questions({"items": [{"type": "mc"}]})

    def test_bare_array_with_type_only(self):
        """Test that a bare array is accepted when items carry a type."""
        assert extract_questions([{"type": "mc"}]) == [{"type": "mc"}]

    def test_scalar_document(self):
        """Test that a scalar JSON document is rejected."""
        with pytest.raises(ParseError) as exc_info:
            extract_questions(42)
        assert exc_info.value.data["data_keys"] == "not_object"


class TestHelpers:
    """Tests for candidate extraction and repair helpers."""

    def test_find_json_end_unclosed(self):
        """Test that an unclosed value extends to the end of the text."""
        text = '{"a": [1, 2'
        assert find_json_end(text) == len(text)

    def test_find_json_end_nested(self):
        """Test that nested objects and arrays are tracked."""
        text = '{"a": [{"b": "]"}]} tail'
        assert text[: find_json_end(text)] == '{"a": [{"b": "]"}]}'

    def test_candidate_trims_to_first_brace(self):
        """Test that leading prose is dropped."""
        assert extract_json_candidate('Result: {"a": 1}') == '{"a": 1}'

    def test_candidate_keeps_bare_array(self):
        """Test that a candidate starting with [ is kept whole."""
        assert extract_json_candidate('[{"a": 1}] done') == '[{"a": 1}]'

    def test_candidate_skips_bracketed_prose(self):
        """Test that a leading "[...]" that is not JSON is not taken as an array."""
        text = '[Draft] {"questions": []} end'
        assert extract_json_candidate(text) == '{"questions": []}'

    def test_candidate_keeps_repairable_array(self):
        """Test that a bare array needing repair is still kept."""
        assert extract_json_candidate('[{"a": 1,},] x') == '[{"a": 1,},]'

    def test_escape_string_newlines_leaves_structure(self):
        """Test that newlines outside strings are untouched."""
        text = '{\n"a": "x\ny"\n}'
        assert escape_string_newlines(text) == '{\n"a": "x\\ny"\n}'

    def test_repair_strips_control_characters(self):
        """Test that control characters are removed."""
        repaired = repair_json('{"a": "b\x07c"}')
        assert json.loads(repaired) == {"a": "bc"}
