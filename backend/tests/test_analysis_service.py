"""Tests for the decision engine: prompt composition, output parsing and override policy."""

import pytest

from pronunciation_api.core.exceptions import PronunciationAnalysisError, ReasoningBackendError, RetrievalError
from pronunciation_api.models_api.schemas import AnalysisResult, PatternMatch
from pronunciation_api.services.analysis_service import (
    ParseError,
    ParseOk,
    PronunciationAnalyzer,
    build_prompt,
    parse_reasoning_output,
    resolve,
)
from pronunciation_api.services.pattern_service import DEFAULT_PATTERN_TABLES, match_patterns

from conftest import CORRECT_JSON, FakeReasoner

INCORRECT_JSON = (
    '{"result": "Incorrect pronunciation", "correct_pronunciation": "Hang-nyeon", '
    '"feedback": "\\"학년\\" → \\"항년\\" (Nasal Assimilation)"}'
)


@pytest.mark.unit
class TestParseReasoningOutput:
    def test_plain_json(self) -> None:
        outcome = parse_reasoning_output(CORRECT_JSON)
        assert outcome == ParseOk(AnalysisResult(result="Correct pronunciation"))

    def test_code_fenced_json(self) -> None:
        outcome = parse_reasoning_output(f"```json\n{INCORRECT_JSON}\n```\n")
        assert isinstance(outcome, ParseOk)
        assert outcome.result.correct_pronunciation == "Hang-nyeon"
        assert "Nasal Assimilation" in outcome.result.feedback

    def test_surrounding_prose_is_ignored(self) -> None:
        outcome = parse_reasoning_output(f"Here is my analysis:\n{CORRECT_JSON}\nHope this helps.")
        assert isinstance(outcome, ParseOk)

    def test_trailing_period_in_label(self) -> None:
        raw = '{"result": "Incorrect pronunciation.", "correct_pronunciation": "", "feedback": "Liaison"}'
        outcome = parse_reasoning_output(raw)
        assert isinstance(outcome, ParseOk)
        assert outcome.result.result == "Incorrect pronunciation"

    def test_correct_verdict_drops_extra_fields(self) -> None:
        raw = '{"result": "Correct pronunciation", "correct_pronunciation": "An-nyeong", "feedback": "Well done"}'
        outcome = parse_reasoning_output(raw)
        assert outcome == ParseOk(AnalysisResult(result="Correct pronunciation"))

    def test_first_object_wins_over_trailing_braces(self) -> None:
        outcome = parse_reasoning_output(f"{INCORRECT_JSON}\nNote: the {{ending}} is fine.")
        assert isinstance(outcome, ParseOk)
        assert outcome.result.correct_pronunciation == "Hang-nyeon"

    def test_first_of_two_objects_is_used(self) -> None:
        outcome = parse_reasoning_output(f"{CORRECT_JSON}\n{INCORRECT_JSON}")
        assert outcome == ParseOk(AnalysisResult(result="Correct pronunciation"))

    @pytest.mark.parametrize(
        "raw",
        [
            "The pronunciation looks fine to me.",
            "",
            "{result: Correct pronunciation}",
            '["Correct pronunciation"]',
            '{"correct_pronunciation": null, "feedback": null}',
            '{"result": "Good", "correct_pronunciation": null, "feedback": null}',
            '{"result": "Incorrect pronunciation", "correct_pronunciation": "x", "feedback": null}',
        ],
    )
    def test_malformed_output_is_a_parse_error(self, raw: str) -> None:
        outcome = parse_reasoning_output(raw)
        assert isinstance(outcome, ParseError)
        assert outcome.raw == raw


@pytest.mark.unit
class TestResolve:
    def test_pattern_hit_overrides_backend_verdict(self, pattern_tables) -> None:
        pattern_match = match_patterns("만나서 반갑습니다", pattern_tables)
        result = resolve(pattern_match, ParseOk(AnalysisResult(result="Correct pronunciation")))
        assert result.result == "Incorrect pronunciation"
        assert result.correct_pronunciation == "Man-na-seo ppan-gap-seum-ni-da"
        assert result.feedback.startswith("Tensification\n")
        assert '"만나서 반갑습니다" → "만나서 빤갑습니다"' in result.feedback

    def test_pattern_hit_overrides_parse_error(self, pattern_tables) -> None:
        pattern_match = match_patterns("여보세여", pattern_tables)
        result = resolve(pattern_match, ParseError(reason="no JSON object in response", raw="???"))
        assert result.result == "Incorrect pronunciation"
        assert '"여보세여" → "여보세요"' in result.feedback
        assert result.correct_pronunciation == "Yeo-bo-se-yo"

    def test_without_romanization_falls_back_to_written_correction(self) -> None:
        pattern_match = match_patterns("하루", DEFAULT_PATTERN_TABLES)
        result = resolve(pattern_match, ParseOk(AnalysisResult(result="Correct pronunciation")))
        assert result.correct_pronunciation == "아루"
        assert result.feedback.splitlines()[0] == "ㅎ Liaison/Weakening"

    def test_h_liaison_explanation_is_not_repeated(self, pattern_tables) -> None:
        result = resolve(match_patterns("많이 드세요", pattern_tables), ParseOk(AnalysisResult(result="Correct pronunciation")))
        assert result.feedback == (
            "ㅎ Liaison\n"
            "\"많이\" ('ㅎ' liaison) → \"마니\"\n"
            "Correct Pronunciation: Ma-ni."
        )

    def test_explanation_without_mapping_keeps_arrow_line(self, pattern_tables) -> None:
        result = resolve(match_patterns("고마워여", pattern_tables), ParseOk(AnalysisResult(result="Correct pronunciation")))
        lines = result.feedback.splitlines()
        assert lines[1] == '"고마워여" → "고마워요".'
        assert lines[2].startswith("The ending 요")

    def test_no_pattern_returns_backend_result(self) -> None:
        backend = AnalysisResult(result="Incorrect pronunciation", correct_pronunciation="Sil-la", feedback="Liquidization")
        assert resolve(PatternMatch(), ParseOk(backend)) == backend

    def test_no_pattern_and_parse_error_gives_diagnostic(self) -> None:
        result = resolve(PatternMatch(), ParseError(reason="invalid JSON", raw="oops"))
        assert result.result == "Incorrect pronunciation"
        assert result.correct_pronunciation is None
        assert result.feedback.startswith("Failed to parse response")
        assert "oops" in result.feedback


@pytest.mark.unit
class TestBuildPrompt:
    def test_open_analysis_prompt(self, rule_index, pattern_tables) -> None:
        chunks = rule_index.search("안녕하세요", k=2)
        prompt = build_prompt("안녕하세요", chunks, match_patterns("안녕하세요", pattern_tables))
        assert "Transcribed text: 안녕하세요" in prompt
        assert "Expected text" not in prompt
        assert "SPECIAL NOTE" not in prompt
        assert all(chunk.text in prompt for chunk in chunks)
        assert '"correct_pronunciation"' in prompt

    def test_reference_comparison_prompt(self, pattern_tables) -> None:
        prompt = build_prompt("학년", [], match_patterns("학년", pattern_tables), expected_text="학년")
        assert "Expected text: 학년" in prompt

    def test_special_note_lists_matched_patterns(self, pattern_tables) -> None:
        prompt = build_prompt("만나서 반갑습니다", [], match_patterns("만나서 반갑습니다", pattern_tables))
        assert "SPECIAL NOTE: The transcription contains text that MUST follow tensification rules." in prompt
        assert '"만나서 반갑습니다" → "만나서 빤갑습니다" (Man-na-seo ppan-gap-seum-ni-da) (Tensification)' in prompt
        assert '"반갑습니다" → "빤갑습니다"' in prompt


@pytest.mark.unit
class TestPronunciationAnalyzer:
    def test_tensification_wins_regardless_of_backend(self, make_context) -> None:
        reasoner = FakeReasoner(CORRECT_JSON)
        result = PronunciationAnalyzer(make_context(reasoner)).analyze("만나서 반갑습니다")

        assert result.result == "Incorrect pronunciation"
        assert "Tensification" in result.feedback
        assert '"만나서 반갑습니다" → "만나서 빤갑습니다"' in result.feedback
        assert len(reasoner.prompts) == 1
        assert "SPECIAL NOTE" in reasoner.prompts[0]

    def test_default_tables_still_catch_tensification(self, make_context) -> None:
        context = make_context(FakeReasoner("not json"), tables=DEFAULT_PATTERN_TABLES)
        result = PronunciationAnalyzer(context).analyze("만나서 반갑습니다")
        assert result.correct_pronunciation == "만나서 빤갑습니다"
        assert '"만나서 반갑습니다" → "만나서 빤갑습니다"' in result.feedback

    def test_tensification_takes_precedence_over_h_liaison(self, make_context) -> None:
        analyzer = PronunciationAnalyzer(make_context(FakeReasoner()))
        result = analyzer.analyze("반갑습니다 좋은 하루 보내세요")
        assert result.feedback.startswith("Tensification")
        assert result.correct_pronunciation == "Ppan-gap-seum-ni-da"

    @pytest.mark.parametrize("text", ["좋은 하루 보내세요", "좋은하루 보내세요"])
    def test_combined_h_liaison_and_weakening(self, make_context, text) -> None:
        result = PronunciationAnalyzer(make_context(FakeReasoner())).analyze(text)
        assert result.result == "Incorrect pronunciation"
        assert result.correct_pronunciation == "Jo-eun a-ru bo-nae-se-yo"
        assert result.feedback == (
            "ㅎ Liaison and Weakening\n"
            "\"좋은\" ('ㅎ' liaison) → \"조은\"\n"
            "\"하루\" ('ㅎ' weakening) → \"아루\"\n"
            "Correct Pronunciation: Jo-eun a-ru bo-nae-se-yo."
        )

    def test_unmatched_transcription_returns_backend_verdict(self, make_context) -> None:
        result = PronunciationAnalyzer(make_context(FakeReasoner(CORRECT_JSON))).analyze("안녕하세요")
        assert result.model_dump() == {"result": "Correct pronunciation", "correct_pronunciation": None, "feedback": None}

    def test_unmatched_transcription_with_incorrect_backend_verdict(self, make_context) -> None:
        result = PronunciationAnalyzer(make_context(FakeReasoner(INCORRECT_JSON))).analyze("학년")
        assert result == parse_reasoning_output(INCORRECT_JSON).result

    @pytest.mark.parametrize("raw", ["I cannot answer that.", '{"result": "Incorrect pronunciation"}'])
    def test_malformed_backend_output_never_raises(self, make_context, raw) -> None:
        result = PronunciationAnalyzer(make_context(FakeReasoner(raw))).analyze("안녕하세요")
        assert result.result == "Incorrect pronunciation"
        assert result.correct_pronunciation is None
        assert result.feedback.startswith("Failed to parse response")

    def test_analyze_is_idempotent(self, make_context) -> None:
        analyzer = PronunciationAnalyzer(make_context(FakeReasoner(INCORRECT_JSON)))
        for text in ("학년", "만나서 반갑습니다", "좋은 하루"):
            assert analyzer.analyze(text) == analyzer.analyze(text)

    def test_expected_text_switches_prompt_and_keeps_override(self, make_context) -> None:
        reasoner = FakeReasoner(CORRECT_JSON)
        result = PronunciationAnalyzer(make_context(reasoner)).analyze("반갑습니다", expected_text="반갑습니다")
        assert "Expected text: 반갑습니다" in reasoner.prompts[0]
        assert result.result == "Incorrect pronunciation"

    def test_blank_expected_text_uses_open_analysis(self, make_context) -> None:
        reasoner = FakeReasoner(CORRECT_JSON)
        PronunciationAnalyzer(make_context(reasoner)).analyze("안녕하세요", expected_text="   ")
        assert "Expected text" not in reasoner.prompts[0]

    def test_backend_failure_is_wrapped(self, make_context) -> None:
        cause = ReasoningBackendError("connection refused")
        analyzer = PronunciationAnalyzer(make_context(FakeReasoner(error=cause)))
        with pytest.raises(PronunciationAnalysisError) as exc_info:
            analyzer.analyze("안녕하세요")
        assert exc_info.value.__cause__ is cause

    def test_retrieval_failure_is_wrapped(self, make_context, monkeypatch) -> None:
        context = make_context(FakeReasoner())

        def broken_search(query, k):
            raise RetrievalError("index unavailable")

        monkeypatch.setattr(context.rule_index, "search", broken_search)
        reasoner = context.reasoner
        with pytest.raises(PronunciationAnalysisError, match="index unavailable"):
            PronunciationAnalyzer(context).analyze("안녕하세요")
        assert reasoner.prompts == []
