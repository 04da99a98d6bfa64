import argparse
import sys

from pronunciation_api.core.config import settings
from pronunciation_api.core.exceptions import CorpusFormatError, IndexBuildError
from pronunciation_api.core.logging_config import configure_logging
from pronunciation_api.services.pattern_service import load_pattern_tables, match_patterns
from pronunciation_api.services.retrieval_service import SentenceTransformerEmbedder, build_rule_index
from pronunciation_api.services.rule_corpus_service import load_pronunciation_rules

DEFAULT_QUERIES = ["만나서 반갑습니다", "좋은 하루 보내세요", "학년", "신라"]


def check_corpus(rules_path: str, patterns_path: str, queries: list[str], top_k: int) -> int:
    """Loads everything the analysis route needs at startup and runs sample queries against it."""
    print(f"Loading rule corpus from: {rules_path}")
    try:
        rules = load_pronunciation_rules(rules_path)
    except CorpusFormatError as e:
        print(f"Error: {e}")
        return 1
    print(f"{len(rules)} rules: {', '.join(rule.name for rule in rules)}")

    print(f"Building index with {settings.EMBEDDING_MODEL_NAME}...")
    try:
        index = build_rule_index(rules, SentenceTransformerEmbedder(settings.EMBEDDING_MODEL_NAME))
    except IndexBuildError as e:
        print(f"Error: {e}")
        return 1
    print(f"Index holds {len(index)} chunks.")

    tables = load_pattern_tables(patterns_path)
    print(
        f"Pattern tables: {len(tables.tensification)} tensification, "
        f"{len(tables.h_liaison)} ㅎ liaison, {len(tables.vowel_confusion)} vowel confusion"
    )

    for query in queries:
        chunks = index.search(query, top_k)
        pattern_match = match_patterns(query, tables)
        print(f"\n'{query}' -> pattern: {pattern_match.pattern_type}")
        for rank, chunk in enumerate(chunks, start=1):
            print(f"  {rank}. {chunk.rule_name}")
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Validate the pronunciation rule corpus and pattern tables.")
    parser.add_argument("--rules", default=settings.RULES_PATH)
    parser.add_argument("--patterns", default=settings.PATTERNS_PATH)
    parser.add_argument("--top-k", type=int, default=settings.RETRIEVAL_TOP_K)
    parser.add_argument("queries", nargs="*", default=DEFAULT_QUERIES)
    args = parser.parse_args()

    configure_logging()
    sys.exit(check_corpus(args.rules, args.patterns, args.queries, args.top_k))
