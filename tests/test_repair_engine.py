import json

import pytest

from seo_content_agent.errors import RepairError
from seo_content_agent.repair import boundary_trim, parse_structured, repair
from seo_content_agent.schemas import KeywordSet, OptimizationResult, PlagiarismResult


def _steps(outcome):
    return [attempt.step for attempt in outcome.attempts]


def test_prose_around_json_is_trimmed_and_parsed_directly():
    raw = (
        'Sure! {"readabilityScore": 80, "seoScore":70,"suggestions":["a","b"],'
        '"optimizedContent":"Hello world."} Thanks!'
    )

    outcome = repair(raw, OptimizationResult)

    assert outcome.ok is True
    assert _steps(outcome) == ["boundary_trim", "direct_parse"]
    assert outcome.value.to_response() == {
        "readabilityScore": 80,
        "seoScore": 70,
        "suggestions": ["a", "b"],
        "optimizedContent": "Hello world.",
    }


def test_serialized_results_round_trip_through_direct_parse():
    samples = [
        KeywordSet.model_validate(
            {"keywords": [{"keyword": "yoga for seniors", "category": "informational"}]}
        ),
        OptimizationResult.model_validate(
            {
                "readabilityScore": 55,
                "seoScore": 61,
                "suggestions": ["Use shorter paragraphs"],
                "optimizedContent": 'Line one.\nA "quoted" line.',
            }
        ),
        PlagiarismResult.model_validate(
            {
                "originalityScore": 90,
                "similarityScore": 10,
                "sources": [
                    {
                        "url": "https://example.com/a",
                        "title": "A",
                        "matchedText": "matched",
                        "similarityPercentage": 12,
                    }
                ],
                "detectedQuotes": [{"text": "To be or not to be", "source": "Hamlet"}],
                "paraphrasedContent": [{"text": "Some text", "similarityScore": 40}],
            }
        ),
    ]

    for sample in samples:
        text = json.dumps(sample.to_response())
        assert parse_structured(text, type(sample)).to_response() == sample.to_response()


def test_missing_required_field_is_a_repair_error():
    raw = '{"readabilityScore": 80, "seoScore": 70, "suggestions": ["a"]}'

    with pytest.raises(RepairError) as excinfo:
        parse_structured(raw, OptimizationResult)

    err = excinfo.value
    assert err.raw_text == raw
    assert [a.step for a in err.attempts] == [
        "boundary_trim",
        "direct_parse",
        "field_repair",
        "syntax_repair",
    ]
    assert all(not a.ok for a in err.attempts[1:])


def test_blank_keyword_category_is_rejected_even_though_json_parses():
    raw = '{"keywords": [{"keyword": "best running shoes", "category": "   "}]}'

    outcome = repair(raw, KeywordSet)

    assert outcome.ok is False
    assert isinstance(outcome.error, RepairError)
    assert "category" in str(outcome.error)


def test_truncated_optimized_content_is_cut_to_last_sentence():
    raw = (
        '{"readabilityScore": 72, "seoScore": 64, "suggestions": ["Add headings"], '
        '"optimizedContent": "Meditation lowers stress. It also sharpens focus and improves sl'
    )

    outcome = repair(raw, OptimizationResult)

    assert outcome.ok is True
    assert outcome.attempts[-1].step == "field_repair"
    assert outcome.value.optimized_content == "Meditation lowers stress."
    assert outcome.value.suggestions == ["Add headings"]


def test_raw_quotes_and_newlines_in_content_are_reencoded():
    raw = (
        '{"readabilityScore": 70, "seoScore": 60, "suggestions": ["x"], '
        '"optimizedContent": "Line one says "hello".\nLine two."}'
    )

    result = parse_structured(raw, OptimizationResult)

    assert result.optimized_content == 'Line one says "hello".\nLine two.'


def test_smart_typography_in_content_is_normalized():
    raw = (
        '{"readabilityScore": 70, "seoScore": 60, "suggestions": ["x"], '
        '"optimizedContent": "It’s fast — really fast…\tDone.\x07"}'
    )

    result = parse_structured(raw, OptimizationResult)

    assert result.optimized_content == "It's fast - really fast...\tDone."


def test_trailing_commas_are_removed():
    raw = '{"keywords": [{"keyword": "yoga for beginners", "category": "informational"},], }'

    outcome = repair(raw, KeywordSet)

    assert outcome.ok is True
    assert outcome.attempts[-1].step == "syntax_repair"
    assert outcome.value.keywords[0].keyword == "yoga for beginners"


def test_structural_smart_quotes_are_normalized():
    raw = "{“keywords”: [{“keyword”: “home workouts”, “category”: “commercial”}]}"

    result = parse_structured(raw, KeywordSet)

    assert result.keywords[0].category == "commercial"


def test_adjacent_object_fragments_are_merged():
    raw = '{"keywords": [{"keyword": "a", "category": "b"} {"keyword": "c", "category": "d"}]}{"note": 1}'

    result = parse_structured(raw, KeywordSet)

    assert [k.keyword for k in result.keywords] == ["a", "c"]


def test_code_fences_are_stripped():
    raw = 'Here it is:\n```json\n{"keywords": [{"keyword": "a", "category": "b"}]}\n```\nEnjoy {not json}'

    assert boundary_trim(raw) == '{"keywords": [{"keyword": "a", "category": "b"}]}'
    assert parse_structured(raw, KeywordSet).keywords[0].keyword == "a"


def test_text_without_an_object_fails_without_parsing():
    outcome = repair("I cannot help with that.", KeywordSet)

    assert outcome.ok is False
    assert _steps(outcome) == ["boundary_trim"]


def test_plagiarism_accepts_legacy_keys_and_rounds_scores():
    raw = (
        '{"originalityScore": 91.6, "similarityScore": 8, "sources": [], '
        '"quotes": [{"text": "To be or not to be", "source": "Hamlet"}], "paraphrased": []}'
    )

    body = parse_structured(raw, PlagiarismResult).to_response()

    assert body["originalityScore"] == 92
    assert body["detectedQuotes"] == [{"text": "To be or not to be", "source": "Hamlet"}]
    assert body["paraphrasedContent"] == []


def test_scores_must_be_numbers_in_range():
    with pytest.raises(RepairError):
        parse_structured('{"originalityScore": true, "similarityScore": 10}', PlagiarismResult)
    with pytest.raises(RepairError):
        parse_structured('{"originalityScore": 150, "similarityScore": 10}', PlagiarismResult)
    with pytest.raises(RepairError):
        parse_structured('{"originalityScore": "90", "similarityScore": 10}', PlagiarismResult)


def test_braces_in_trailing_prose_are_not_part_of_the_object():
    raw = (
        '{"keywords": [{"keyword": "yoga mats", "category": "commercial"}]}\n'
        "Tip: wrap terms like {keyword} in quotes."
    )

    assert boundary_trim(raw) == '{"keywords": [{"keyword": "yoga mats", "category": "commercial"}]}'
    outcome = repair(raw, KeywordSet)
    assert outcome.ok is True
    assert _steps(outcome) == ["boundary_trim", "direct_parse"]
    assert outcome.value.keywords[0].keyword == "yoga mats"


def test_braces_inside_string_values_do_not_end_the_object():
    raw = 'Result: {"keywords": [{"keyword": "use {brand} }", "category": "navigational"}]} (done}'

    assert parse_structured(raw, KeywordSet).keywords[0].keyword == "use {brand} }"
