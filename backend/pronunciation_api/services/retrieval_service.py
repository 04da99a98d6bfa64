import logging
from dataclasses import dataclass, field
from typing import List, Protocol, Sequence

import faiss
import numpy as np
from langchain_text_splitters import RecursiveCharacterTextSplitter
from sentence_transformers import SentenceTransformer

from ..core.config import settings
from ..core.exceptions import IndexBuildError, RetrievalError
from ..models_api.schemas import PronunciationRule
from .rule_corpus_service import rule_to_text

logger = logging.getLogger(__name__)


class Embedder(Protocol):
    def embed(self, texts: Sequence[str]) -> np.ndarray:
        """Returns one row per text, all rows of the same dimension."""
        ...


class SentenceTransformerEmbedder:
    """Embeds text with a (multilingual) sentence-transformers model."""

    def __init__(self, model_name: str = settings.EMBEDDING_MODEL_NAME):
        self.model_name = model_name
        self.model = SentenceTransformer(model_name)
        logger.info(f"Embedding model loaded: {model_name}")

    def embed(self, texts: Sequence[str]) -> np.ndarray:
        embeddings = self.model.encode(list(texts), normalize_embeddings=True)
        return np.asarray(embeddings, dtype="float32")


@dataclass(eq=False)
class RuleDocumentChunk:
    text: str
    rule_name: str
    position: int # Order in the flattened corpus, used to break distance ties
    embedding: np.ndarray = field(default=None, repr=False)


def chunk_rules(
    rules: Sequence[PronunciationRule],
    chunk_size: int = settings.CHUNK_SIZE,
    chunk_overlap: int = settings.CHUNK_OVERLAP,
) -> List[RuleDocumentChunk]:
    """Splits every flattened rule into overlapping chunks, preserving corpus order."""
    splitter = RecursiveCharacterTextSplitter(chunk_size=chunk_size, chunk_overlap=chunk_overlap)
    chunks: List[RuleDocumentChunk] = []
    for rule in rules:
        for piece in splitter.split_text(rule_to_text(rule)):
            chunks.append(RuleDocumentChunk(text=piece, rule_name=rule.name, position=len(chunks)))
    return chunks


class RuleIndex:
    """Exact nearest-neighbour index (L2) over rule document chunks."""

    def __init__(self, chunks: List[RuleDocumentChunk], embedder: Embedder):
        self.chunks = chunks
        self.embedder = embedder
        self.index = None
        if chunks:
            matrix = np.vstack([chunk.embedding for chunk in chunks]).astype("float32")
            self.index = faiss.IndexFlatL2(matrix.shape[1])
            self.index.add(matrix)

    def __len__(self) -> int:
        return len(self.chunks)

    def search(self, query: str, k: int = settings.RETRIEVAL_TOP_K) -> List[RuleDocumentChunk]:
        if k <= 0 or self.index is None:
            return []

        try:
            query_embedding = np.asarray(self.embedder.embed([query]), dtype="float32").reshape(1, -1)
            # Rank every chunk so equal distances fall back to corpus order
            distances, indices = self.index.search(query_embedding, len(self.chunks))
        except Exception as e:
            raise RetrievalError(f"Rule search failed for query {query!r}: {e}") from e

        ranked = sorted(
            (float(distance), int(idx))
            for distance, idx in zip(distances[0], indices[0])
            if idx >= 0
        )
        return [self.chunks[idx] for _, idx in ranked[:k]]


def build_rule_index(
    rules: Sequence[PronunciationRule],
    embedder: Embedder,
    chunk_size: int = settings.CHUNK_SIZE,
    chunk_overlap: int = settings.CHUNK_OVERLAP,
) -> RuleIndex:
    """
    Chunks and embeds the rule corpus and builds the search index.

    Raises:
        IndexBuildError: chunking, embedding or index construction failed.
    """
    logger.info("Creating vector index from pronunciation rules")
    try:
        chunks = chunk_rules(rules, chunk_size=chunk_size, chunk_overlap=chunk_overlap)
        if chunks:
            embeddings = np.asarray(embedder.embed([chunk.text for chunk in chunks]), dtype="float32")
            if embeddings.ndim != 2 or embeddings.shape[0] != len(chunks):
                raise ValueError(
                    f"expected {len(chunks)} embeddings, got array of shape {embeddings.shape}"
                )
            for chunk, vector in zip(chunks, embeddings):
                chunk.embedding = vector
        index = RuleIndex(chunks, embedder)
    except Exception as e:
        raise IndexBuildError(f"Failed to build pronunciation rule index: {e}") from e

    logger.info(f"Rule index built over {len(chunks)} chunks from {len(rules)} rules")
    return index
