"""TaskForge - task planning, parallel execution and recursive processing for LLM agents."""

__version__ = "0.1.0"
