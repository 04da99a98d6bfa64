import json
import logging
import os
from typing import List, Optional

from pydantic import ValidationError

from ..core.exceptions import CorpusFormatError
from ..models_api.schemas import PronunciationRule, RuleCorpusDocument

logger = logging.getLogger(__name__)


def load_pronunciation_rules(path: str) -> List[PronunciationRule]:
    """
    Loads the pronunciation rule corpus from a JSON document of the form
    {"rules": [{"name", "description", "examples": [{"word", "standard", "actual"}]}]}.

    Raises:
        CorpusFormatError: the file is missing, is not JSON, or has no `rules` array.
    """
    logger.info(f"Loading pronunciation rules from {path}")
    if not os.path.exists(path):
        raise CorpusFormatError(f"Rule corpus not found at {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise CorpusFormatError(f"Could not read rule corpus {path}: {e}") from e

    if not isinstance(data, dict) or not isinstance(data.get("rules"), list):
        raise CorpusFormatError("Invalid rules data format: expected a top-level 'rules' array")

    try:
        document = RuleCorpusDocument.model_validate(data)
    except ValidationError as e:
        raise CorpusFormatError(f"Invalid rule entry in {path}: {e}") from e

    logger.info(f"Loaded {len(document.rules)} pronunciation rules")
    return list(document.rules)


def rule_to_text(rule: PronunciationRule) -> str:
    """Flattens a rule into the text that gets chunked and embedded."""
    examples_text = ", ".join(
        f"{ex.word} (standard: {ex.standard}, actual: {ex.actual})" for ex in rule.examples
    )
    return f"Rule: {rule.name}\nDescription: {rule.description}\nExamples: {examples_text}"


def get_rule_by_name(rules: List[PronunciationRule], name: str) -> Optional[PronunciationRule]:
    return next((rule for rule in rules if rule.name == name), None)
