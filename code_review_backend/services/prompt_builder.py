"""Review prompt template"""

from __future__ import annotations

from code_review_backend.models.chat import ReviewContext
from code_review_backend.models.diff import DiffBundle

_INTRO = "You are an expert code reviewer. Please review the following git changes"

_INSTRUCTIONS = """1. **Summary**: A brief overview of what changed
2. **Potential Issues**: Any bugs, security concerns, or code quality problems
3. **Best Practices**: Suggestions for improvements following best practices
4. **Positive Feedback**: What was done well"""

_TEMPLATE = """{intro} and provide:

{instructions}

Here are the git changes:

```diff
{diff}
```

Please provide a thorough but concise code review."""


def build_prompt(diff_bundle: DiffBundle, context: ReviewContext | None = None) -> str:
    """Render the review prompt for a diff bundle"""
    intro = _INTRO
    if context is not None:
        intro += (
            f' from branch "{context.target_branch}"'
            f' compared to "{context.base_branch}"'
        )
    return _TEMPLATE.format(
        intro=intro,
        instructions=_INSTRUCTIONS,
        diff=diff_bundle.render(),
    )
