"""Tests for the result normalizer.

Covers the two failure tiers: hard failures for unparseable payloads and
silent repair for field-level problems.
"""

import json

import pytest

from decision_analyzer.exceptions import InvalidJson, NoJsonFound
from decision_analyzer.normalizer import (
    DEFAULT_ASSUMPTIONS,
    DEFAULT_SUMMARY,
    clamp_confidence,
    clamp_score,
    extract_json,
    normalize,
    parse_response,
)
from decision_analyzer.schema import Decision
from decision_analyzer.whatif import what_if


def model_payload(**overrides) -> dict:
    """A well-formed model response for the two_by_two decision."""
    payload = {
        "recommendation": {
            "optionId": "opt_2",
            "optionLabel": "Laptop B",
            "confidence": 0.82,
            "summary": "Laptop B balances price and battery.",
        },
        "scores": [
            {
                "optionId": "opt_1",
                "optionLabel": "Laptop A",
                "totalScore": 61,
                "criteriaScores": [
                    {"criterionId": "crit_1", "criterionName": "Price", "score": 6},
                    {"criterionId": "crit_2", "criterionName": "Battery", "score": 5},
                ],
            },
            {
                "optionId": "opt_2",
                "optionLabel": "Laptop B",
                "totalScore": 78,
                "criteriaScores": [
                    {"criterionId": "crit_1", "criterionName": "Price", "score": 8},
                    {"criterionId": "crit_2", "criterionName": "Battery", "score": 7},
                ],
            },
        ],
        "reasoning": {
            "decomposition": "Compared cost against endurance.",
            "assumptions": ["Prices are current"],
            "tradeoffs": ["A is cheaper"],
            "risks": ["Battery wear"],
            "sensitivity": "Raising Price weight favours A.",
        },
    }
    payload.update(overrides)
    return payload


class TestHardFailures:
    """Payloads that cannot be parsed at all."""

    def test_no_json(self, two_by_two: Decision):
        with pytest.raises(NoJsonFound):
            normalize("no json here at all", two_by_two)

    def test_unclosed_json_is_invalid(self, two_by_two: Decision):
        with pytest.raises(InvalidJson):
            normalize("{ bad json", two_by_two)

    def test_garbage_between_braces_is_invalid(self, two_by_two: Decision):
        with pytest.raises(InvalidJson):
            normalize("{recommendation: nope}", two_by_two)

    def test_empty_text(self, two_by_two: Decision):
        with pytest.raises(NoJsonFound):
            normalize("", two_by_two)

    def test_parse_response_returns_failure_instead_of_raising(self, two_by_two: Decision):
        outcome = parse_response("nothing", two_by_two)
        assert outcome.ok is False
        assert isinstance(outcome.error, NoJsonFound)
        assert outcome.result is None

    @pytest.mark.parametrize("raw", [
        '{"recommendation": {"confidence": NaN}, "scores": Infinity, "reasoning": {}}',
        '{"scores": [{"optionId": "opt_1", "totalScore": -Infinity}]}',
    ])
    def test_non_standard_constants_are_invalid(self, two_by_two: Decision, raw: str):
        with pytest.raises(InvalidJson):
            normalize(raw, two_by_two)


class TestExtraction:
    """Extraction and light repair of the JSON span."""

    def test_strips_prose_and_fences(self):
        raw = 'Sure! Here it is:\n```json\n{"a": 1}\n```\nHope that helps.'
        assert extract_json(raw) == {"a": 1}

    def test_removes_trailing_commas(self):
        assert extract_json('{"a": [1, 2,], "b": {"c": 3,},}') == {"a": [1, 2], "b": {"c": 3}}

    def test_replaces_control_characters(self):
        assert extract_json('{"summary": "line one\nline two"}') == {"summary": "line one line two"}

    def test_greedy_span_first_to_last_brace(self):
        raw = 'prefix {"outer": {"inner": 1}} suffix'
        assert extract_json(raw) == {"outer": {"inner": 1}}


class TestWellFormedPayload:
    """A correct payload passes through unchanged."""

    def test_values_preserved(self, two_by_two: Decision):
        result = normalize(json.dumps(model_payload()), two_by_two)

        assert result.recommendation.option_id == "opt_2"
        assert result.recommendation.confidence == pytest.approx(0.82)
        assert [s.total_score for s in result.scores] == [61, 78]
        assert [cs.score for cs in result.scores[1].criteria_scores] == [8, 7]
        assert result.reasoning.risks == ("Battery wear",)

    def test_no_repairs_recorded(self, two_by_two: Decision):
        outcome = parse_response(json.dumps(model_payload()), two_by_two)
        assert outcome.ok is True
        assert outcome.repairs == []

    def test_serializes_with_camel_case_keys(self, two_by_two: Decision):
        data = normalize(json.dumps(model_payload()), two_by_two).to_json_dict()
        assert data["recommendation"]["optionId"] == "opt_2"
        assert data["scores"][0]["criteriaScores"][0]["criterionName"] == "Price"

    def test_result_is_immutable(self, two_by_two: Decision):
        result = normalize(json.dumps(model_payload()), two_by_two)
        with pytest.raises(Exception):
            result.recommendation.confidence = 0.1


class TestRepair:
    """Field-level malformation is repaired, never raised."""

    def test_empty_sections_synthesize_neutral_result(self, two_by_two: Decision):
        raw = '{"recommendation": {}, "scores": [], "reasoning": {}}'
        result = normalize(raw, two_by_two)

        assert len(result.scores) == 2
        for score in result.scores:
            assert len(score.criteria_scores) == 2
            assert all(cs.score == 5 for cs in score.criteria_scores)
            assert score.total_score == 50
        assert result.recommendation.confidence == 0.7
        assert result.recommendation.option_id == "opt_1"
        assert result.recommendation.option_label == "Laptop A"
        assert result.recommendation.summary == DEFAULT_SUMMARY
        assert result.reasoning.assumptions == DEFAULT_ASSUMPTIONS

    def test_clamps_scores_and_confidence(self, two_by_two: Decision):
        payload = model_payload()
        payload["recommendation"]["confidence"] = 1.5
        payload["scores"][0]["criteriaScores"][0]["score"] = 15
        payload["scores"][0]["criteriaScores"][1]["score"] = -3
        result = normalize(json.dumps(payload), two_by_two)

        assert result.recommendation.confidence == 1.0
        assert result.scores[0].criteria_scores[0].score == 10
        assert result.scores[0].criteria_scores[1].score == 1

    def test_string_numbers_coerced(self, two_by_two: Decision):
        payload = model_payload()
        payload["scores"][0]["totalScore"] = "64.5"
        payload["scores"][0]["criteriaScores"][0]["score"] = "7"
        payload["recommendation"]["confidence"] = "0.4"
        result = normalize(json.dumps(payload), two_by_two)

        assert result.scores[0].total_score == 64.5
        assert result.scores[0].criteria_scores[0].score == 7
        assert result.recommendation.confidence == pytest.approx(0.4)

    def test_non_numeric_values_default(self, two_by_two: Decision):
        payload = model_payload()
        payload["scores"][1]["totalScore"] = "high"
        payload["scores"][1]["criteriaScores"][0]["score"] = None
        payload["recommendation"]["confidence"] = "very"
        result = normalize(json.dumps(payload), two_by_two)

        assert result.scores[1].total_score == 50
        assert result.scores[1].criteria_scores[0].score == 5
        assert result.recommendation.confidence == 0.7

    def test_missing_ids_fall_back_positionally(self, two_by_two: Decision):
        payload = model_payload()
        del payload["scores"][1]["optionId"]
        del payload["scores"][1]["optionLabel"]
        del payload["scores"][1]["criteriaScores"][1]["criterionName"]
        result = normalize(json.dumps(payload), two_by_two)

        assert result.scores[1].option_id == "opt_2"
        assert result.scores[1].option_label == "Laptop B"
        assert result.scores[1].criteria_scores[1].criterion_name == "Battery"

    def test_malformed_criteria_scores_synthesized(self, two_by_two: Decision):
        payload = model_payload()
        payload["scores"][0]["criteriaScores"] = "eight and six"
        result = normalize(json.dumps(payload), two_by_two)

        sub = result.scores[0].criteria_scores
        assert [cs.criterion_id for cs in sub] == ["crit_1", "crit_2"]
        assert [cs.score for cs in sub] == [5, 5]

    def test_scores_not_a_list_synthesized(self, two_by_two: Decision):
        result = normalize(json.dumps(model_payload(scores={"opt_1": 9})), two_by_two)
        assert [s.option_id for s in result.scores] == ["opt_1", "opt_2"]
        assert all(s.total_score == 50 for s in result.scores)

    def test_skipped_option_padded(self, two_by_two: Decision):
        payload = model_payload()
        payload["scores"] = payload["scores"][1:]
        result = normalize(json.dumps(payload), two_by_two)

        assert [s.option_id for s in result.scores] == ["opt_2", "opt_1"]
        assert result.scores[1].total_score == 50

    def test_extra_entries_dropped(self, two_by_two: Decision):
        payload = model_payload()
        payload["scores"].append(dict(payload["scores"][0], optionId="opt_9"))
        payload["scores"][0]["criteriaScores"].append(
            {"criterionId": "crit_7", "criterionName": "Weight", "score": 3}
        )
        result = normalize(json.dumps(payload), two_by_two)

        assert len(result.scores) == 2
        assert len(result.scores[0].criteria_scores) == 2

    def test_repeated_option_id_reassigned(self, two_by_two: Decision):
        payload = model_payload()
        payload["scores"][1]["optionId"] = "opt_1"
        outcome = parse_response(json.dumps(payload), two_by_two)
        result = outcome.result

        assert [s.option_id for s in result.scores] == ["opt_1", "opt_2"]
        assert result.scores[1].option_label == "Laptop B"
        assert result.scores[1].total_score == 78
        assert any("repeated" in r for r in outcome.repairs)

    def test_repeated_criterion_id_reassigned(self, two_by_two: Decision):
        payload = model_payload()
        payload["scores"][0]["criteriaScores"][1]["criterionId"] = "crit_1"
        result = normalize(json.dumps(payload), two_by_two)

        sub = result.scores[0].criteria_scores
        assert [cs.criterion_id for cs in sub] == ["crit_1", "crit_2"]
        assert sub[1].criterion_name == "Battery"
        assert sub[1].score == 7

    def test_repeated_ids_keep_what_if_ranks_distinct(self, two_by_two: Decision):
        payload = model_payload()
        payload["scores"][0]["optionId"] = "opt_2"
        result = normalize(json.dumps(payload), two_by_two)
        outcome = what_if(result, two_by_two.criteria, two_by_two.criteria)

        assert sorted(r.original_rank for r in outcome.ranking) == [1, 2]
        assert all(r.rank_delta == 0 for r in outcome.ranking)

    def test_unknown_recommendation_repaired_to_best_score(self, two_by_two: Decision):
        payload = model_payload()
        payload["recommendation"]["optionId"] = "laptop-b-uuid"
        result = normalize(json.dumps(payload), two_by_two)

        assert result.recommendation.option_id == "opt_2"
        assert result.recommendation.option_label == "Laptop B"

    def test_recommendation_label_taken_from_matching_score(self, two_by_two: Decision):
        payload = model_payload()
        del payload["recommendation"]["optionLabel"]
        result = normalize(json.dumps(payload), two_by_two)
        assert result.recommendation.option_label == "Laptop B"

    def test_reasoning_lists_coerced(self, two_by_two: Decision):
        payload = model_payload()
        payload["reasoning"]["assumptions"] = "single string"
        payload["reasoning"]["risks"] = [1, "two", None]
        result = normalize(json.dumps(payload), two_by_two)

        assert result.reasoning.assumptions == DEFAULT_ASSUMPTIONS
        assert result.reasoning.risks == ("1", "two", "null")

    def test_repairs_are_recorded(self, two_by_two: Decision):
        outcome = parse_response('{"scores": []}', two_by_two)
        assert outcome.ok is True
        assert any("scores missing" in r for r in outcome.repairs)
        assert any("recommendation missing" in r for r in outcome.repairs)


class TestClampHelpers:
    """Direct tests for the clamp helpers."""

    @pytest.mark.parametrize("raw,expected", [
        (15, 10), (-3, 1), (7, 7), (6.6, 7), ("3", 3), (True, 5), ([], 5), (float("nan"), 5),
    ])
    def test_clamp_score(self, raw, expected):
        assert clamp_score(raw) == expected

    @pytest.mark.parametrize("raw,expected", [
        (1.5, 1.0), (-0.2, 0.0), (0.5, 0.5), (None, 0.7), ("x", 0.7),
    ])
    def test_clamp_confidence(self, raw, expected):
        assert clamp_confidence(raw) == expected
