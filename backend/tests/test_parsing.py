import pytest

from ai.parsing import (
    ParseError,
    ParseOk,
    parse_dream_story,
    parse_idea_analysis,
    parse_score,
    strip_code_fence,
)
from fakes import DREAM_REPLY, REPLY_WITHOUT_FEASIBILITY, VALID_REPLY


def _reply_with_score(score: str) -> str:
    return VALID_REPLY.replace("Score: 7.5", f"Score: {score}")


def test_valid_reply_populates_all_fields():
    result = parse_idea_analysis(VALID_REPLY)

    assert isinstance(result, ParseOk)
    analysis = result.value
    assert analysis.score == 7.5
    assert analysis.title == "Dog Rideshare Network"
    assert analysis.summary.startswith("An app that books rides")
    assert analysis.reasoning.startswith("Helps busy owners")
    assert analysis.feasibility.startswith("Plausible")
    assert analysis.similar_ideas == "Pet taxis, Wag, Rover"


def test_fields_in_any_order_with_surrounding_chatter():
    reply = """Here is my evaluation.

Similar Ideas: None that I know of
Title: Solar Water Still
Feasibility: Easy to build
Score: 8
Reasoning: Cheap clean water
Summary: A solar still made from bottles
"""
    result = parse_idea_analysis(reply)

    assert isinstance(result, ParseOk)
    assert result.value.score == 8.0
    assert result.value.similar_ideas == "None that I know of"


def test_markdown_bold_labels_are_accepted():
    reply = "\n".join(
        f"**{label}:** {value}"
        for label, value in (
            ("Score", "9"),
            ("Title", "Ocean Cleanup Drones"),
            ("Summary", "Drones that skim plastic"),
            ("Reasoning", "Large impact"),
            ("Feasibility", "Hard but possible"),
            ("Similar Ideas", "The Ocean Cleanup"),
        )
    )
    result = parse_idea_analysis(reply)

    assert isinstance(result, ParseOk)
    assert result.value.title == "Ocean Cleanup Drones"
    assert result.value.score == 9.0


def test_missing_feasibility_line_is_missing_field():
    result = parse_idea_analysis(REPLY_WITHOUT_FEASIBILITY)

    assert isinstance(result, ParseError)
    assert result.cause == "missing_field"
    assert result.field == "feasibility"


def test_empty_value_counts_as_missing():
    result = parse_idea_analysis(VALID_REPLY.replace("Title: Dog Rideshare Network", "Title:"))

    assert isinstance(result, ParseError)
    assert result.cause == "missing_field"
    assert result.field == "title"


def test_value_on_next_line_is_not_taken():
    reply = VALID_REPLY.replace("Summary: An app", "Summary:\nAn app")

    result = parse_idea_analysis(reply)

    assert isinstance(result, ParseError)
    assert result.field == "summary"


@pytest.mark.parametrize("score", ["11", "0", "abc", "", "-3", "7/10", "nan", "10.01"])
def test_out_of_range_or_non_numeric_scores_are_rejected(score):
    result = parse_idea_analysis(_reply_with_score(score))

    assert isinstance(result, ParseError)
    assert result.cause in ("invalid_score", "missing_field")
    if score:
        assert result.cause == "invalid_score"
        assert result.field == "score"


@pytest.mark.parametrize("score,expected", [("1", 1.0), ("10", 10.0), ("7.5", 7.5), ("10.0", 10.0)])
def test_scores_within_range_are_accepted(score, expected):
    result = parse_idea_analysis(_reply_with_score(score))

    assert isinstance(result, ParseOk)
    assert result.value.score == expected


def test_parse_score_helper():
    assert parse_score(" 4 ") == 4.0
    assert parse_score("4.") is None
    assert parse_score(None) is None


@pytest.mark.parametrize("text", ["", "   \n  ", None])
def test_empty_reply(text):
    result = parse_idea_analysis(text)

    assert isinstance(result, ParseError)
    assert result.cause == "empty_response"


def test_parser_never_raises_on_garbage():
    for text in ("{}", "Score:", "```json\n{}\n```", "\x00\x01", "Score: 5\n" * 50):
        assert isinstance(parse_idea_analysis(text), (ParseOk, ParseError))


def test_strip_code_fence():
    assert strip_code_fence('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fence('```\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fence('  {"a": 1}  ') == '{"a": 1}'


def test_dream_reply_in_code_fence():
    result = parse_dream_story(DREAM_REPLY)

    assert isinstance(result, ParseOk)
    assert result.value.story.startswith("Books drifted")
    assert result.value.analysis.title == "The Floating Library"


def test_dream_reply_without_title_has_no_analysis():
    result = parse_dream_story('{"story": "A quiet walk through glass woods."}')

    assert isinstance(result, ParseOk)
    assert result.value.analysis is None


@pytest.mark.parametrize(
    "text,cause",
    [
        ("Once upon a time there was a plain prose story.", "invalid_json"),
        ('["story"]', "invalid_json"),
        ('{"title": "No Story"}', "missing_story"),
        ('{"title": "Blank", "story": "   "}', "missing_story"),
        ("", "empty_response"),
    ],
)
def test_dream_reply_failures(text, cause):
    result = parse_dream_story(text)

    assert isinstance(result, ParseError)
    assert result.cause == cause
