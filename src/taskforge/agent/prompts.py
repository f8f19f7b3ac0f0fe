"""Prompt templates for planning, direct answers and reflection."""

PLANNING_PROMPT = """You are an AI task planner. Break down the following user request into concrete, executable subtasks.

User Request: {request}

Available Tools:
{tools}

Conversation Context:
{history}
{project_context}
Requirements:
1. Each task should use ONE tool
2. Tasks should be atomic and specific
3. Specify dependencies between tasks using their ids (task-0, task-1, ...) in list order
4. Keep it simple - prefer fewer tasks over many small ones
5. Consider parallel execution opportunities
6. A task can use an earlier task's output in its args with ${{task-N.result}}
{limit_rule}
Output Format (JSON):
{{
  "tasks": [
    {{
      "description": "Read the user configuration file",
      "tool": "read_file",
      "args": {{ "path": "config.json" }},
      "dependencies": []
    }},
    {{
      "description": "Update the theme setting",
      "tool": "write_file",
      "args": {{ "path": "config.json", "content": "..." }},
      "dependencies": ["task-0"]
    }}
  ],
  "reasoning": "Brief explanation of the plan"
}}

Respond ONLY with valid JSON."""

REPLAN_PROMPT = """The following task failed:
Task: {description}
Tool: {tool}
Error: {error}

Original request: {request}

Suggest alternative tasks to accomplish the goal. Consider:
1. Using different tools
2. Breaking the task into smaller steps
3. Working around the error

Available Tools:
{tools}

Refer to other replacement tasks by position (task-0, task-1, ...).

Output Format (JSON):
{{
  "tasks": [{{"description": "...", "tool": "...", "args": {{}}, "dependencies": []}}],
  "reasoning": "..."
}}

Respond ONLY with valid JSON."""

DIRECT_ANSWER_PROMPT = """Complete the following task and reply with the result only.

Task: {description}
{context}"""

REFLECTION_PROMPT = """Analyze the following task execution and provide detailed feedback.

Task: {description}
Tool Used: {tool}
Status: {status}
{details}
Evaluate:
1. Did the task succeed? (boolean)
2. Confidence level in the result (0.0 to 1.0)
3. Any issues or concerns? (list)
4. Suggestions for improvement? (list)
5. Should this task be retried with a different approach? (boolean)
6. If retry needed, what alternative approach would you suggest?

Respond in JSON format:
{{
  "success": true,
  "confidence": 0.9,
  "issues": ["issue 1"],
  "suggestions": ["suggestion 1"],
  "shouldRetry": false,
  "alternativeApproach": {{"description": "...", "tool": "...", "args": {{}}}}
}}"""

CORRECTION_PROMPT = """The following task failed. Propose an alternative approach.

Task: {description}
Tool Used: {tool}
Arguments: {args}
Error: {error}

Consider:
1. Using a different tool
2. Modifying the arguments
3. Breaking into smaller steps
4. Working around the limitation

Respond with JSON:
{{
  "canFix": true,
  "alternative": {{
    "description": "...",
    "tool": "...",
    "args": {{}},
    "reasoning": "why this approach is better"
  }}
}}

If the task is fundamentally impossible, set canFix to false."""

PATTERN_PROMPT = """Analyze these task execution patterns:

Completed Tasks ({completed_count}):
{completed}

Failed Tasks ({failed_count}):
{failed}

Identify:
1. Common issues that led to failures
2. Patterns in successful tasks
3. Recommendations to improve success rate

Respond in JSON:
{{
  "commonIssues": ["issue 1"],
  "successPatterns": ["pattern 1"],
  "recommendations": ["rec 1"]
}}"""

EVALUATION_PROMPT = """Evaluate the quality of this task plan.

Tasks:
{tasks}

Available Tools: {tools}

Rate the plan (0.0 to 1.0) based on:
1. Are all tools available?
2. Are dependencies correct?
3. Are tasks well-defined?
4. Is the plan efficient?
5. Are there any obvious issues?

Respond in JSON:
{{
  "score": 0.8,
  "concerns": ["concern 1"],
  "improvements": ["improvement 1"]
}}"""
