"""Pytest configuration and fixtures for the pronunciation analysis tests."""

import json
from pathlib import Path
from typing import Callable, List, Optional, Sequence

import numpy as np
import pytest

from pronunciation_api.core.config import settings
from pronunciation_api.core.context import AnalysisContext
from pronunciation_api.models_api.schemas import PatternTables, PronunciationRule, TranscriptionResult
from pronunciation_api.services.pattern_service import load_pattern_tables
from pronunciation_api.services.retrieval_service import RuleIndex, build_rule_index
from pronunciation_api.services.rule_corpus_service import load_pronunciation_rules

EMBEDDING_DIM = 64

CORRECT_JSON = '{"result":"Correct pronunciation","correct_pronunciation":null,"feedback":null}'


class FakeEmbedder:
    """Character-histogram embeddings: identical texts map to identical vectors."""

    def __init__(self) -> None:
        self.calls: List[List[str]] = []

    def embed(self, texts: Sequence[str]) -> np.ndarray:
        self.calls.append(list(texts))
        vectors = np.zeros((len(texts), EMBEDDING_DIM), dtype="float32")
        for row, text in enumerate(texts):
            for char in text:
                vectors[row, ord(char) % EMBEDDING_DIM] += 1.0
            norm = np.linalg.norm(vectors[row])
            if norm > 0:
                vectors[row] /= norm
        return vectors


class FakeReasoner:
    """Returns a canned reply (or raises) and records every prompt it receives."""

    def __init__(self, response: str = CORRECT_JSON, error: Optional[Exception] = None) -> None:
        self.response = response
        self.error = error
        self.prompts: List[str] = []

    def invoke(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.response


class FakeTranscriber:
    def __init__(self, text: str = "안녕하세요", is_loaded: bool = True) -> None:
        self.text = text
        self.is_loaded = is_loaded
        self.audio_paths: List[str] = []

    def transcribe(self, audio_path: str) -> TranscriptionResult:
        self.audio_paths.append(audio_path)
        return TranscriptionResult(text=self.text, words=[])


@pytest.fixture(scope="session")
def rules() -> List[PronunciationRule]:
    return load_pronunciation_rules(settings.RULES_PATH)


@pytest.fixture(scope="session")
def pattern_tables() -> PatternTables:
    return load_pattern_tables(settings.PATTERNS_PATH)


@pytest.fixture
def fake_embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def rule_index(rules: List[PronunciationRule], fake_embedder: FakeEmbedder) -> RuleIndex:
    return build_rule_index(rules, fake_embedder)


@pytest.fixture
def make_context(
    rules: List[PronunciationRule], rule_index: RuleIndex, pattern_tables: PatternTables
) -> Callable[..., AnalysisContext]:
    """Builds an AnalysisContext around the bundled corpus with an injected reasoner."""

    def _make(reasoner: FakeReasoner, tables: Optional[PatternTables] = None) -> AnalysisContext:
        return AnalysisContext(
            rules=tuple(rules),
            rule_index=rule_index,
            pattern_tables=tables if tables is not None else pattern_tables,
            reasoner=reasoner,
            top_k=4,
        )

    return _make


@pytest.fixture
def write_json(tmp_path: Path) -> Callable[[str, object], str]:
    def _write(name: str, payload: object) -> str:
        path = tmp_path / name
        path.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
        return str(path)

    return _write
