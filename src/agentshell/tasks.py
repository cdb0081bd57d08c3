"""Prompt templates for the built-in generation tasks.

Git output is collected by the caller; these functions only format it.
"""

from __future__ import annotations

REVIEW_DISALLOWED_TOOLS = ("Bash(git:*)", "Edit")
NO_CHANGES_TO_REVIEW = "No changes to review"


def truncate_lines(text: str, max_lines: int) -> str:
    return "\n".join(text.split("\n")[:max_lines])


def build_commit_message_prompt(
    recent_commits: str,
    staged_stat: str,
    staged_diff: str,
    *,
    max_diff_lines: int,
) -> str:
    diff = truncate_lines(staged_diff, max_diff_lines) or "(no staged changes detected)"
    return f"""You cannot call any tools. Everything you need is in this message. \
Do not explain; reply with one short commit message only.

Reference style:
{recent_commits or "(no recent commits)"}

Change summary:
{staged_stat or "(no stats)"}

Change details:
{diff}"""


def build_branch_name_prompt(description: str) -> str:
    return f"""You cannot call any tools. Reply with a single git branch name only, \
lowercase words joined by hyphens, optionally prefixed with a type such as feat/ or fix/.

Work description:
{description.strip() or "(no description)"}"""


def build_code_review_prompt(git_diff: str, git_log: str, language: str) -> str:
    return f"""Always reply in {language}. You are performing a code review on the changes in the current branch.


## Code Review Instructions

The entire git diff for this branch has been provided below, as well as a list of all commits made to this branch.

**CRITICAL: EVERYTHING YOU NEED IS ALREADY PROVIDED BELOW.** The complete git diff and full commit history \
are included in this message.

**DO NOT run git diff, git log, git status, or ANY other git commands.** All the information you need to \
perform this review is already here.

When reviewing the diff:
1. **Focus on logic and correctness** - Check for bugs, edge cases, and potential issues.
2. **Consider readability** - Is the code clear and maintainable? Does it follow the conventions of this repository?
3. **Evaluate performance** - Are there obvious performance concerns or optimizations that could be made?
4. **Assess test coverage** - Does the repository have testing patterns? If so, are there adequate tests for \
these changes?
5. **Ask clarifying questions** - Ask the user for clarification if you are unsure about the changes or need \
more context.
6. **Don't be overly pedantic** - Nitpicks are fine, but only if they are relevant issues within reason.

In your output:
- Provide a summary overview of the general code quality.
- Present the identified issues in a table with the columns: index (1, 2, etc.), line number(s), code, issue, \
and potential solution(s).
- If no issues are found, briefly state that the code meets the repository's standards.

## Full Diff

**REMINDER: Output directly. Do not use any tools to fetch git information.** Simply read the diff and \
commit history that follow.

{git_diff or "(No diff available)"}

## Commit History

{git_log or "(No commit history available)"}"""
