"""Tests for the data chunker."""

import pytest
from pydantic import ValidationError

from taskforge.errors import UnsupportedDataError
from taskforge.rlm.chunking import DataChunker
from taskforge.rlm.models import ChunkingStrategy, ChunkMethod


@pytest.fixture
def chunker() -> DataChunker:
    return DataChunker()


class TestFixedSize:
    def test_without_overlap(self, chunker: DataChunker) -> None:
        strategy = ChunkingStrategy(method=ChunkMethod.FIXED_SIZE, chunk_size=4)
        assert chunker.chunk("abcdefghij", strategy) == ["abcd", "efgh", "ij"]

    def test_with_overlap(self, chunker: DataChunker) -> None:
        strategy = ChunkingStrategy(method=ChunkMethod.FIXED_SIZE, chunk_size=4, overlap=1)
        assert chunker.chunk("abcdefghij", strategy) == ["abcd", "defg", "ghij"]

    def test_overlap_must_be_smaller_than_size(self, chunker: DataChunker) -> None:
        with pytest.raises(ValidationError):
            ChunkingStrategy(chunk_size=4, overlap=4)
        with pytest.raises(ValueError):
            chunker.fixed_size("abcdef", 3, 3)

    def test_default_size(self, chunker: DataChunker) -> None:
        chunks = chunker.chunk("x" * 2500, ChunkingStrategy())
        assert [len(c) for c in chunks] == [1000, 1000, 500]

    def test_empty_string(self, chunker: DataChunker) -> None:
        assert chunker.fixed_size("", 10) == []


class TestSemantic:
    def test_groups_whole_sentences(self, chunker: DataChunker) -> None:
        strategy = ChunkingStrategy(method=ChunkMethod.SEMANTIC, chunk_size=10)
        chunks = chunker.chunk("One. Two! Three? Four", strategy)
        assert chunks == ["One. Two!", "Three?", "Four"]

    def test_long_sentence_is_its_own_chunk(self, chunker: DataChunker) -> None:
        text = "Short. " + "A very long sentence that goes on and on." + " End."
        chunks = chunker.semantic(text, 10)
        assert "A very long sentence that goes on and on." in chunks


class TestStructural:
    def test_splits_on_separator(self, chunker: DataChunker) -> None:
        strategy = ChunkingStrategy(method=ChunkMethod.STRUCTURAL)
        assert chunker.chunk("a\n\n\n\nb\n\nc ", strategy) == ["a", "b", "c"]

    def test_custom_separator(self, chunker: DataChunker) -> None:
        strategy = ChunkingStrategy(method=ChunkMethod.STRUCTURAL, separator="---")
        assert chunker.chunk("intro---body---", strategy) == ["intro", "body"]


class TestCustom:
    def test_requires_function(self, chunker: DataChunker) -> None:
        with pytest.raises(ValueError, match="Custom chunker function required"):
            chunker.chunk("a,b", ChunkingStrategy(method=ChunkMethod.CUSTOM))

    def test_uses_function(self, chunker: DataChunker) -> None:
        strategy = ChunkingStrategy(
            method=ChunkMethod.CUSTOM, custom_chunker=lambda text: text.split(",")
        )
        assert chunker.chunk("a,b,c", strategy) == ["a", "b", "c"]


class TestLists:
    def test_chunk_list(self, chunker: DataChunker) -> None:
        strategy = ChunkingStrategy(chunk_size=3)
        assert chunker.chunk(list(range(7)), strategy) == [[0, 1, 2], [3, 4, 5], [6]]

    def test_default_list_size(self, chunker: DataChunker) -> None:
        assert len(chunker.chunk(list(range(25)), ChunkingStrategy())) == 3

    def test_unsupported_type(self, chunker: DataChunker) -> None:
        with pytest.raises(UnsupportedDataError) as exc_info:
            chunker.chunk({"a": 1}, ChunkingStrategy())  # type: ignore[arg-type]
        assert "dict" in exc_info.value.message


class TestCode:
    def test_never_splits_lines(self, chunker: DataChunker) -> None:
        code = "aaaaa\nbbbbb\nccccc"
        assert chunker.chunk_code(code, max_size=12) == ["aaaaa\nbbbbb", "ccccc"]

    def test_chunk_files_by_type(self, chunker: DataChunker) -> None:
        files = {
            "src/app.py": "import os\nprint(os.name)",
            "notes.md": "First point. Second point.",
        }

        chunked = chunker.chunk_files(files, max_chunk_size=15)

        assert chunked["src/app.py"] == ["import os", "print(os.name)"]
        assert chunked["notes.md"] == ["First point.", "Second point."]
