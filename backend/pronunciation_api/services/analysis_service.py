import json
import logging
import re
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Union

from pydantic import ValidationError

from ..core.context import AnalysisContext
from ..core.exceptions import PronunciationAnalysisError
from ..models_api.schemas import (
    CORRECT_PRONUNCIATION,
    INCORRECT_PRONUNCIATION,
    AnalysisResult,
    PatternMatch,
)
from .pattern_service import match_patterns
from .prompt_templates import (
    OPEN_ANALYSIS_TEMPLATE,
    REFERENCE_COMPARISON_TEMPLATE,
    SCHEMA_INSTRUCTIONS,
    SPECIAL_NOTE_HEADERS,
)
from .retrieval_service import RuleDocumentChunk

logger = logging.getLogger(__name__)

DEFAULT_RULE_NAMES = {
    "tensification": "Tensification",
    "h_liaison": "ㅎ Liaison/Weakening",
    "vowel_confusion": "Vowel Confusion",
}

_JSON_DECODER = json.JSONDecoder()
_OPENING_FENCE = re.compile(r"^```[A-Za-z]*\s*")
_CLOSING_FENCE = re.compile(r"\s*```$")


@dataclass(frozen=True)
class ParseOk:
    result: AnalysisResult


@dataclass(frozen=True)
class ParseError:
    reason: str
    raw: str


ParseOutcome = Union[ParseOk, ParseError]


# --- Prompt composition ---

def format_special_note(pattern_match: PatternMatch) -> str:
    if not pattern_match.found:
        return ""
    lines = []
    for entry in pattern_match.matches:
        rule = entry.rule or DEFAULT_RULE_NAMES[pattern_match.pattern_type]
        romanized = f" ({entry.romanized})" if entry.romanized else ""
        lines.append(f'"{entry.pattern}" → "{entry.correct}"{romanized} ({rule})')
    return "\n\n" + SPECIAL_NOTE_HEADERS[pattern_match.pattern_type] + "\n" + "\n".join(lines)


def build_prompt(
    transcription: str,
    chunks: Sequence[RuleDocumentChunk],
    pattern_match: PatternMatch,
    expected_text: Optional[str] = None,
) -> str:
    relevant_rules = "\n\n".join(chunk.text for chunk in chunks) + format_special_note(pattern_match)
    if expected_text:
        prompt = REFERENCE_COMPARISON_TEMPLATE.format(
            transcription=transcription, expected_text=expected_text, relevant_rules=relevant_rules
        )
    else:
        prompt = OPEN_ANALYSIS_TEMPLATE.format(transcription=transcription, relevant_rules=relevant_rules)
    schema = json.dumps(AnalysisResult.model_json_schema(), ensure_ascii=False)
    return f"{prompt}\n\n{SCHEMA_INSTRUCTIONS.format(schema=schema)}"


# --- Reasoning output parsing ---

def _decode_json_object(raw: str) -> Tuple[Optional[dict], Optional[str]]:
    """Decodes the first complete JSON object in the text, ignoring fences and anything after it."""
    text = _CLOSING_FENCE.sub("", _OPENING_FENCE.sub("", raw.strip())).strip()
    start = text.find("{")
    if start == -1:
        return None, "no JSON object in response"

    error = None
    while start != -1:
        try:
            data, _ = _JSON_DECODER.raw_decode(text, start)
            return data, None
        except json.JSONDecodeError as e:
            error = error or f"invalid JSON: {e.msg}"
            start = text.find("{", start + 1)
    return None, error


def parse_reasoning_output(raw: str) -> ParseOutcome:
    """Parses untrusted backend text into an AnalysisResult. Never raises."""
    data, reason = _decode_json_object(raw or "")
    if data is None:
        return ParseError(reason=reason, raw=raw)

    label = data.get("result")
    if isinstance(label, str):
        data["result"] = label.strip().rstrip(".")
        if data["result"] == CORRECT_PRONUNCIATION:
            data["correct_pronunciation"] = None
            data["feedback"] = None

    try:
        return ParseOk(result=AnalysisResult.model_validate(data))
    except ValidationError as e:
        return ParseError(reason=f"response does not match the result schema ({e.error_count()} errors)", raw=raw)


# --- Decision ---

def build_pattern_result(pattern_match: PatternMatch) -> AnalysisResult:
    """Deterministic verdict from the first matching pattern entry."""
    entry = pattern_match.matches[0]
    correct_pronunciation = entry.romanized or entry.correct or ""

    if pattern_match.special_case:
        feedback = f"{entry.rule}\n{entry.explanation}\nCorrect Pronunciation: {correct_pronunciation}."
    else:
        written = entry.pattern
        if pattern_match.pattern_type == "vowel_confusion":
            written = entry.incorrect or entry.pattern
        lines = [entry.rule or DEFAULT_RULE_NAMES[pattern_match.pattern_type]]
        explanation = entry.explanation or ""
        # Explanations in the ㅎ table already spell out the written → spoken mapping
        if f'"{written}"' not in explanation or f'"{entry.correct}"' not in explanation:
            lines.append(f'"{written}" → "{entry.correct}".')
        if explanation:
            lines.append(explanation)
        lines.append(f"Correct Pronunciation: {correct_pronunciation}.")
        feedback = "\n".join(lines)

    return AnalysisResult(
        result=INCORRECT_PRONUNCIATION,
        correct_pronunciation=correct_pronunciation,
        feedback=feedback,
    )


def build_unparseable_result(error: ParseError) -> AnalysisResult:
    raw_preview = (error.raw or "")[:200]
    return AnalysisResult(
        result=INCORRECT_PRONUNCIATION,
        correct_pronunciation=None,
        feedback=f"Failed to parse response: {error.reason}. Raw output: {raw_preview}",
    )


def resolve(pattern_match: PatternMatch, outcome: ParseOutcome) -> AnalysisResult:
    """Pattern knowledge wins over the reasoning backend; the backend covers everything else."""
    if pattern_match.found:
        return build_pattern_result(pattern_match)
    if isinstance(outcome, ParseOk):
        return outcome.result
    return build_unparseable_result(outcome)


class PronunciationAnalyzer:
    """Retrieval + pattern matching + one reasoning call per analysis."""

    def __init__(self, context: AnalysisContext):
        self.context = context

    def analyze(self, transcription: str, expected_text: Optional[str] = None) -> AnalysisResult:
        """
        Decides whether a transcription reflects correct Korean pronunciation.

        Args:
            transcription (str): Text produced by the transcription provider.
            expected_text (str, optional): Reference text; switches the prompt to comparison mode.

        Returns:
            AnalysisResult: always well-formed, including for unparseable backend output.

        Raises:
            PronunciationAnalysisError: retrieval or the reasoning backend failed.
        """
        expected_text = expected_text.strip() if expected_text else None
        logger.info(f"Analyzing pronunciation for transcription: {transcription}")

        try:
            chunks = self.context.rule_index.search(transcription, self.context.top_k)
        except Exception as e:
            logger.error(f"Rule retrieval failed: {e}", exc_info=True)
            raise PronunciationAnalysisError(f"Pronunciation analysis failed: {e}") from e
        logger.debug(f"Retrieved rules: {[chunk.rule_name for chunk in chunks]}")

        pattern_match = match_patterns(transcription, self.context.pattern_tables)
        prompt = build_prompt(transcription, chunks, pattern_match, expected_text)
        logger.info(
            f"Using prompt with pattern handling: {pattern_match.pattern_type} "
            f"(expected text: {'yes' if expected_text else 'no'})"
        )

        try:
            raw_output = self.context.reasoner.invoke(prompt)
        except Exception as e:
            logger.error(f"Reasoning backend failed: {e}", exc_info=True)
            raise PronunciationAnalysisError(f"Pronunciation analysis failed: {e}") from e

        outcome = parse_reasoning_output(raw_output)
        if isinstance(outcome, ParseError):
            logger.warning(f"Unparseable reasoning output ({outcome.reason}): {(raw_output or '')[:200]!r}")
        if pattern_match.found:
            logger.info(f"Overriding reasoning result with {pattern_match.pattern_type} pattern")

        return resolve(pattern_match, outcome)
