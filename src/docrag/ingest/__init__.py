"""Document ingestion: extraction, chunking and the background embedding run."""

from .chunking import ChunkingConfig, SentenceChunker, TextChunk, chunk_text
from .extractors import ContentExtractor, PDFExtractor, TextExtractor
from .pipeline import IngestionPipeline, IngestPipelineConfig

__all__ = [
    "ChunkingConfig",
    "ContentExtractor",
    "IngestPipelineConfig",
    "IngestionPipeline",
    "PDFExtractor",
    "SentenceChunker",
    "TextChunk",
    "TextExtractor",
    "chunk_text",
]
