"""Instruction templates for the four analysis tasks.

Each template has exactly two placeholders, ``{language}`` and ``{code}``.
Substituted values are inserted verbatim and never re-parsed, so braces or
template syntax inside the user's code come through untouched.
"""

from __future__ import annotations

from pydantic import BaseModel

from codeclarity.schemas.contracts import TaskName

DOCUMENTATION_PROMPT = """\
You are a senior software engineer whose primary job is to write documentation.

You will generate documentation for the given code. Make sure to explain the \
code in detail.

Language: {language}
Code: {code}
"""

REFACTORING_PROMPT = """\
You are a code refactoring expert. Analyze the following code and provide \
refactoring suggestions to improve its readability, efficiency, and adherence \
to best practices.

Language: {language}
Code:
```{language}
{code}
```

Refactoring Suggestions:"""

COMPLEXITY_PROMPT = """\
You are an expert software engineer specializing in code analysis.

You will analyze the given code and determine its algorithmic complexity \
(Big O notation).
Explain the complexity in a concise and clear manner.

Language: {language}
Code: {code}
"""

UNIT_TESTS_PROMPT = """\
You are a software engineer who specializes in writing unit tests.

You will generate unit tests for the given code.
Use a common testing framework for the language (e.g., Jest for JavaScript, \
PyTest for Python, or Google Test for C++).
Include tests for edge cases, normal inputs, and invalid inputs.
The output should be only the code for the unit tests.

Language: {language}
Code:
```{language}
{code}
```

Unit Tests:"""

TEMPLATES: dict[TaskName, str] = {
    TaskName.DOCUMENTATION: DOCUMENTATION_PROMPT,
    TaskName.REFACTORING: REFACTORING_PROMPT,
    TaskName.COMPLEXITY: COMPLEXITY_PROMPT,
    TaskName.UNIT_TESTS: UNIT_TESTS_PROMPT,
}


def render(task: TaskName, payload: BaseModel) -> str:
    """Render the task's template for an already-validated ``{code, language}`` input."""
    language = payload.language  # type: ignore[attr-defined]
    return TEMPLATES[task].format(
        language=getattr(language, "value", language),
        code=payload.code,  # type: ignore[attr-defined]
    )
