"""Tests for the recursive processing tools."""

from pathlib import Path

import pytest

from taskforge.rlm.models import RLMConfig
from taskforge.rlm.prompts import ANALYSIS_PROMPTS
from taskforge.tools.registry import ToolContext
from taskforge.tools.rlm_tools import RLMTools, create_default_registry, files_as_items

from helpers import FakeModelCaller


@pytest.fixture
def rlm_config() -> RLMConfig:
    return RLMConfig(size_threshold=100, list_chunk_size=2)


@pytest.fixture
def workspace(sample_codebase: Path) -> ToolContext:
    return ToolContext(workspace_root=str(sample_codebase))


class TestRecursiveProcess:
    @pytest.mark.asyncio
    async def test_custom_context(self, rlm_config: RLMConfig) -> None:
        caller = FakeModelCaller("three themes")
        tools = RLMTools(caller, rlm_config)

        result = await tools.recursive_process(task="Find themes", context={"notes": "short"})

        assert result["success"] is True
        assert result["result"] == "three themes"
        assert result["strategy_used"] == "map-reduce"
        assert result["trajectory"] == {"total_calls": 1, "max_depth": 0}
        assert result["message"] == "Processing completed using map-reduce strategy. Made 1 calls."

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "kwargs",
        [
            {},
            {"context_type": "codebase"},
            {"context_type": "files", "file_paths": []},
            {"context_type": "custom", "context": {}},
            {"context_type": "database", "context": {"a": 1}},
        ],
    )
    async def test_invalid_context_configuration(self, kwargs: dict) -> None:
        caller = FakeModelCaller()

        result = await RLMTools(caller).recursive_process(task="t", **kwargs)

        assert result["success"] is False
        assert result["error"].startswith("Invalid context configuration")
        assert caller.prompts == []

    @pytest.mark.asyncio
    async def test_codebase_context_chunks_by_file(
        self, rlm_config: RLMConfig, workspace: ToolContext
    ) -> None:
        caller = FakeModelCaller(lambda p: "combined" if p.startswith("Aggregate") else "seen")
        tools = RLMTools(caller, rlm_config)

        result = await tools.recursive_process(
            task="Describe the code",
            context_type="codebase",
            codebase_path=".",
            tool_context=workspace,
        )

        assert result["success"] is True
        assert result["result"] == "combined"
        # 3 files in chunks of 2, then the reduce call
        assert result["trajectory"]["total_calls"] == 3
        assert '"path": "main.go"' in caller.prompts[0]
        assert "## stats:" in caller.prompts[0]

    @pytest.mark.asyncio
    async def test_codebase_extension_filter(
        self, rlm_config: RLMConfig, workspace: ToolContext
    ) -> None:
        caller = FakeModelCaller("python only")

        result = await RLMTools(caller, rlm_config).recursive_process(
            task="Describe",
            context_type="codebase",
            codebase_path=".",
            extensions=[".py"],
            tool_context=workspace,
        )

        assert result["trajectory"]["total_calls"] == 1
        assert "src/app.py" in caller.prompts[0]
        assert "main.go" not in caller.prompts[0]

    @pytest.mark.asyncio
    async def test_file_context(self, rlm_config: RLMConfig, workspace: ToolContext) -> None:
        caller = FakeModelCaller("reviewed")

        result = await RLMTools(caller, rlm_config).recursive_process(
            task="Review",
            context_type="files",
            file_paths=["src/app.py"],
            tool_context=workspace,
        )

        assert result["success"] is True
        assert "def main():" in caller.prompts[0]

    @pytest.mark.asyncio
    async def test_failure_payload(self, rlm_config: RLMConfig) -> None:
        tools = RLMTools(FakeModelCaller(), rlm_config)

        result = await tools.recursive_process(
            task="t", context={"rows": list(range(10))}, max_recursion_depth=0
        )

        assert result["success"] is False
        assert result["error_type"] == "depth_exceeded"
        assert result["trajectory"] == {"total_calls": 0}
        assert rlm_config.max_recursion_depth == 10

    @pytest.mark.asyncio
    async def test_strategy_passed_through(self, rlm_config: RLMConfig) -> None:
        caller = FakeModelCaller(["one", "two"])

        result = await RLMTools(caller, rlm_config).recursive_process(
            task="Walk", strategy="sequential-processing", context={"steps": ["a", "b"]}
        )

        assert result["result"] == "two"
        assert result["strategy_used"] == "sequential-processing"


class TestAnalyzeCodebase:
    @pytest.mark.asyncio
    async def test_uses_analysis_prompt(
        self, rlm_config: RLMConfig, workspace: ToolContext
    ) -> None:
        caller = FakeModelCaller("no issues")

        result = await RLMTools(caller, rlm_config).analyze_codebase(
            analysis_type="security", file_extensions=[".go"], tool_context=workspace
        )

        assert result["success"] is True
        assert caller.prompts[0].startswith(ANALYSIS_PROMPTS["security"])

    @pytest.mark.asyncio
    async def test_unknown_type_uses_general(
        self, rlm_config: RLMConfig, workspace: ToolContext
    ) -> None:
        caller = FakeModelCaller("fine")

        await RLMTools(caller, rlm_config).analyze_codebase(
            analysis_type="vibes", file_extensions=[".go"], tool_context=workspace
        )

        assert caller.prompts[0].startswith(ANALYSIS_PROMPTS["general"])


class TestRegistration:
    def test_default_registry(self) -> None:
        registry = create_default_registry(FakeModelCaller())

        assert registry.names() == ["recursive_process", "analyze_codebase"]
        assert registry.get("recursive_process").accepts_context is True
        definition = registry.get("recursive_process").definition
        assert definition.parameters["required"] == ["task"]
        assert "tree-traversal" in definition.parameters["properties"]["strategy"]["enum"]

    @pytest.mark.asyncio
    async def test_executes_through_registry(self, workspace: ToolContext) -> None:
        registry = create_default_registry(FakeModelCaller("done"))

        result = await registry.execute(
            "recursive_process",
            {"task": "t", "context": {"a": "b"}, "__dep_task-1": "ignored"},
            workspace,
        )

        assert result["success"] is True

    def test_files_as_items(self) -> None:
        assert files_as_items({"a.py": "x"}) == [{"path": "a.py", "content": "x"}]
