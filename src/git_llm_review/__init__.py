"""
git-llm-review

Reviews changed files in a git repository with an LLM, concurrently and
with retries, and turns loosely formatted model output into structured
issues and suggested diffs.
"""

__version__ = "0.3.0"
