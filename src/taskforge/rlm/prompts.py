"""Prompt templates for recursive processing."""

# Heading that precedes the serialized variables in every leaf prompt
CONTEXT_HEADER = "# Available Context:"

# Appended to a variable's serialized form when it is cut at the char limit
TRUNCATION_NOTE = "... (truncated, {total} total chars)"

RLM_MAP_PROMPT = """Process this chunk of data for the task: {task}

Chunk {index}/{total}"""

RLM_REDUCE_PROMPT = """Aggregate these chunk results for the task: {task}

You have {count} chunk results to combine. Resolve overlaps and contradictions,
and answer the task as if you had seen all the data at once."""

RLM_DECOMPOSE_PROMPT = """Given this task: {task}

Available context variables: {variable_names}

Break this task into 2-5 independent subtasks that can be solved separately and then combined.
Each subtask should list only the context variables it needs.

Respond with a JSON array only:
[{{"subtask": "description", "needs": ["var1", "var2"]}}]"""

RLM_COMBINE_PROMPT = """Combine these subtask results to complete: {task}"""

RLM_SEQUENTIAL_PROMPT = """{task}

Processing item {index}/{total}{previous_note}"""

RLM_PREVIOUS_RESULT_NOTE = ". Previous result available; build on it."

RLM_TREE_PROMPT = """The context below contains hierarchical data (nested objects,
directory trees or similar). Walk the structure top-down, keep track of parent/child
relationships and refer to nodes by their path.

{task}"""

# Task prompts for the analyze_codebase tool
ANALYSIS_PROMPTS: dict[str, str] = {
    "security": (
        "Analyze this codebase for security vulnerabilities. Look for: SQL injection, XSS, "
        "authentication issues, hardcoded secrets, insecure dependencies, and other OWASP "
        "Top 10 issues. For each issue found, provide: location, severity, description, and fix."
    ),
    "architecture": (
        "Analyze the architecture of this codebase. Describe: overall structure, design "
        "patterns used, component organization, data flow, dependencies, and architectural "
        "strengths/weaknesses."
    ),
    "quality": (
        "Analyze code quality. Check for: code smells, complexity issues, duplication, "
        "naming conventions, documentation, test coverage, and best practices. Provide "
        "specific recommendations."
    ),
    "documentation": (
        "Generate comprehensive documentation for this codebase. Include: overview, "
        "architecture, main components, API reference, setup instructions, and usage examples."
    ),
    "bugs": (
        "Find potential bugs and issues in this codebase. Look for: logic errors, edge "
        "cases, race conditions, resource leaks, exception handling issues, and other "
        "common bugs."
    ),
    "general": (
        "Provide a comprehensive analysis of this codebase. Include: purpose, structure, "
        "key components, quality assessment, and suggestions for improvement."
    ),
}
