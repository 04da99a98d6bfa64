import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from ..models_api.schemas import PatternTables, PronunciationRule
from ..services.pattern_service import load_pattern_tables
from ..services.reasoning_service import OpenAIReasoner, Reasoner
from ..services.retrieval_service import Embedder, RuleIndex, SentenceTransformerEmbedder, build_rule_index
from ..services.rule_corpus_service import load_pronunciation_rules
from .config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnalysisContext:
    """Read-only resources shared by every analysis for the lifetime of the process."""

    rules: Tuple[PronunciationRule, ...]
    rule_index: RuleIndex
    pattern_tables: PatternTables
    reasoner: Reasoner
    top_k: int = default_settings.RETRIEVAL_TOP_K


def build_analysis_context(
    settings: Settings = default_settings,
    embedder: Optional[Embedder] = None,
    reasoner: Optional[Reasoner] = None,
) -> AnalysisContext:
    """
    Loads the rule corpus, builds its index and loads the pattern tables.

    Corpus and index failures (CorpusFormatError, IndexBuildError) propagate:
    the analysis route must not be served without them. Pattern tables fall
    back to built-in defaults.
    """
    rules = load_pronunciation_rules(settings.RULES_PATH)
    embedder = embedder or SentenceTransformerEmbedder(settings.EMBEDDING_MODEL_NAME)
    rule_index = build_rule_index(
        rules, embedder, chunk_size=settings.CHUNK_SIZE, chunk_overlap=settings.CHUNK_OVERLAP
    )
    pattern_tables = load_pattern_tables(settings.PATTERNS_PATH)
    reasoner = reasoner or OpenAIReasoner(
        api_key=settings.OPENAI_API_KEY,
        model=settings.REASONING_MODEL_NAME,
        temperature=settings.REASONING_TEMPERATURE,
        timeout=settings.REASONING_TIMEOUT_SECONDS,
        max_retries=settings.REASONING_MAX_RETRIES,
    )
    logger.info("Pronunciation rules database and vector index initialized successfully")
    return AnalysisContext(
        rules=tuple(rules),
        rule_index=rule_index,
        pattern_tables=pattern_tables,
        reasoner=reasoner,
        top_k=settings.RETRIEVAL_TOP_K,
    )
