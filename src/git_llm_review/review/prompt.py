"""
Review prompt rendering.

One template per provider flavor. Both ask for the same JSON contract
that the response parser understands.
"""

from pathlib import PurePosixPath

from .models import FileTask

TRUNCATION_MARKER = "\n\n[... Content truncated due to length constraints ...]\n\n"

CHARS_PER_TOKEN = 4

LANGUAGES = {
    ".go": "go",
    ".js": "javascript",
    ".ts": "typescript",
    ".py": "python",
    ".java": "java",
    ".rb": "ruby",
    ".php": "php",
    ".c": "c",
    ".cc": "cpp",
    ".cpp": "cpp",
    ".h": "c",
    ".cs": "csharp",
    ".rs": "rust",
    ".swift": "swift",
    ".kt": "kotlin",
    ".sh": "bash",
    ".html": "html",
    ".css": "css",
    ".vue": "vue",
    ".proto": "protobuf",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".json": "json",
    ".md": "markdown",
}

RESPONSE_CONTRACT = """\
Your response should be in JSON format with the following structure:
{
  "issues": [
    {
      "title": "Issue title (e.g., 'Bug: Potential null pointer', 'Style: Inconsistent naming')",
      "explanation": "Detailed explanation of the issue",
      "file": "The file path where the issue is found"
    }
  ],
  "diffs": [
    {
      "file": "The file path",
      "diff": "Consolidated diff showing all suggested fixes for this file"
    }
  ]
}

IMPORTANT: Group all issues by file and provide only ONE consolidated diff per file \
that addresses all issues for that file. Do not include separate diffs for each issue.

IMPORTANT: The FULL FILE CONTENT below is the current version of the file. Make your \
diff suggestions against this version. The diff shown is for context only.

IMPORTANT: Only propose changes that you know will work. Do not assume that values \
or keys exist unless the code shows they do."""

FOCUS = """\
Remember to focus on:
1. Bugs and potential issues
2. Code style and best practices
3. Performance concerns
4. Security vulnerabilities
5. Maintainability and readability

Use the full file context to provide a thorough analysis of the changes.
Provide your response in the JSON format specified above."""

OPENAI_TEMPLATE = """\
You are a code review assistant. Please review the following code changes and provide feedback.

{contract}

File: {path}

FULL FILE CONTENT:
{content}

DIFF (CHANGES MADE):
```diff
{diff}
```

{focus}
"""

ANTHROPIC_TEMPLATE = """\
Human: You are a code review assistant. Please review the following code changes and provide feedback.

{contract}

<file path="{path}">
FULL FILE CONTENT:
{content}

DIFF (CHANGES MADE):
```diff
{diff}
```
</file>

{focus}

Respond with the JSON object only.
"""

TEMPLATES = {
    "openai": OPENAI_TEMPLATE,
    "anthropic": ANTHROPIC_TEMPLATE,
}


def language_for(path: str) -> str:
    """Code fence language for a file, or empty when unknown."""
    return LANGUAGES.get(PurePosixPath(path).suffix.lower(), "")


def render_review_prompt(task: FileTask, diff_text: str, content: str, provider: str) -> str:
    """Fill the provider's template for one file."""
    template = TEMPLATES.get(provider.lower(), OPENAI_TEMPLATE)

    if content:
        body = f"```{language_for(task.path)}\n{content.rstrip()}\n```"
    elif task.is_deleted:
        body = "(File deleted; no content available. Review the removal shown in the diff.)"
    else:
        body = "(No content available.)"

    return template.format(
        contract=RESPONSE_CONTRACT,
        path=task.path,
        content=body,
        diff=diff_text.rstrip(),
        focus=FOCUS,
    )


def truncate_prompt(prompt: str, max_tokens: int) -> str:
    """
    Cut a prompt down to roughly ``max_tokens`` tokens.

    Keeps the head and tail, where the instructions and the diff live, and
    replaces the middle with a marker. Zero or negative limits disable it.
    """
    if max_tokens <= 0:
        return prompt

    max_chars = max_tokens * CHARS_PER_TOKEN
    if len(prompt) <= max_chars:
        return prompt

    keep = max(0, (max_chars - len(TRUNCATION_MARKER)) // 2)
    return prompt[:keep] + TRUNCATION_MARKER + prompt[len(prompt) - keep:]
