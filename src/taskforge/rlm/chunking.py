"""Chunking strategies for oversized strings and lists.

Splits data into an ordered sequence of smaller units so the RLM executor
can process each one in its own model call.
"""

import re
from pathlib import PurePath
from re import Pattern
from typing import Any

from taskforge.errors import UnsupportedDataError
from taskforge.rlm.models import ChunkingStrategy, ChunkMethod

DEFAULT_STRING_CHUNK_SIZE = 1000
DEFAULT_LIST_CHUNK_SIZE = 10
DEFAULT_SEPARATOR = "\n\n"

CODE_EXTENSIONS = frozenset({".ts", ".tsx", ".js", ".jsx", ".py", ".java", ".go", ".rs"})


class DataChunker:
    """Splits strings and lists according to a ChunkingStrategy."""

    # A sentence is a run of text ending in terminal punctuation; trailing
    # text without punctuation counts as a final sentence.
    SENTENCE_PATTERN: Pattern[str] = re.compile(r"[^.!?]+[.!?]+|[^.!?]+$")

    def chunk(self, data: str | list[Any], strategy: ChunkingStrategy) -> list[Any]:
        """Chunk data according to strategy.

        Args:
            data: A string or a list.
            strategy: Method and parameters for splitting.

        Returns:
            Ordered chunks; strings yield strings, lists yield sub-lists.

        Raises:
            UnsupportedDataError: If data is neither a string nor a list.
        """
        if isinstance(data, list):
            return self.chunk_list(data, strategy.chunk_size or DEFAULT_LIST_CHUNK_SIZE)
        if isinstance(data, str):
            return self._chunk_string(data, strategy)
        raise UnsupportedDataError(type(data).__name__)

    def _chunk_string(self, text: str, strategy: ChunkingStrategy) -> list[str]:
        size = strategy.chunk_size or DEFAULT_STRING_CHUNK_SIZE

        if strategy.method == ChunkMethod.FIXED_SIZE:
            return self.fixed_size(text, size, strategy.overlap)
        if strategy.method == ChunkMethod.SEMANTIC:
            return self.semantic(text, size)
        if strategy.method == ChunkMethod.STRUCTURAL:
            return self.structural(text, strategy.separator or DEFAULT_SEPARATOR)
        if strategy.method == ChunkMethod.CUSTOM:
            if strategy.custom_chunker is None:
                raise ValueError("Custom chunker function required")
            return list(strategy.custom_chunker(text))

        return self.fixed_size(text, DEFAULT_STRING_CHUNK_SIZE, 0)

    @staticmethod
    def chunk_list(items: list[Any], size: int = DEFAULT_LIST_CHUNK_SIZE) -> list[list[Any]]:
        return [items[i : i + size] for i in range(0, len(items), size)]

    @staticmethod
    def fixed_size(text: str, size: int, overlap: int = 0) -> list[str]:
        """Fixed windows of ``size`` characters, each starting ``size - overlap`` after the last."""
        if overlap >= size:
            raise ValueError("overlap must be smaller than chunk size")

        chunks = []
        start = 0
        while start < len(text):
            end = min(start + size, len(text))
            chunks.append(text[start:end])
            if end == len(text):
                break
            start = end - overlap
        return chunks

    def semantic(self, text: str, target_size: int) -> list[str]:
        """Group whole sentences into chunks of roughly ``target_size`` characters.

        A single sentence longer than the target becomes its own chunk.
        """
        sentences = self.SENTENCE_PATTERN.findall(text) or [text]
        chunks = []
        current = ""

        for sentence in sentences:
            if current and len(current) + len(sentence) > target_size:
                chunks.append(current.strip())
                current = sentence
            else:
                current += sentence

        if current.strip():
            chunks.append(current.strip())
        return chunks

    @staticmethod
    def structural(text: str, separator: str = DEFAULT_SEPARATOR) -> list[str]:
        return [piece.strip() for piece in text.split(separator) if piece.strip()]

    @staticmethod
    def chunk_code(code: str, max_size: int = 2000) -> list[str]:
        """Split source code on line boundaries, never mid-line."""
        chunks = []
        current: list[str] = []
        current_size = 0

        for line in code.split("\n"):
            line_size = len(line) + 1  # newline
            if current and current_size + line_size > max_size:
                chunks.append("\n".join(current))
                current = [line]
                current_size = line_size
            else:
                current.append(line)
                current_size += line_size

        if current:
            chunks.append("\n".join(current))
        return chunks

    def chunk_files(self, files: dict[str, str], max_chunk_size: int = 2000) -> dict[str, list[str]]:
        """Chunk a path -> content mapping; code files keep line boundaries."""
        chunked = {}
        for path, content in files.items():
            if PurePath(path).suffix.lower() in CODE_EXTENSIONS:
                chunked[path] = self.chunk_code(content, max_chunk_size)
            else:
                chunked[path] = self.semantic(content, max_chunk_size)
        return chunked
