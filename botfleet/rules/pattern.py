"""
Compiled text patterns shared by auto-response and webhook rules.
"""

import re
from dataclasses import dataclass, field

from botfleet.errors import PatternError


@dataclass(frozen=True)
class RulePattern:
    """
    A regular expression compiled once at construction.

    Matching uses search semantics: the pattern may match anywhere in the
    text unless it is anchored with ``^``/``$``.
    """
    pattern: str
    case_insensitive: bool = False
    _regex: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not isinstance(self.pattern, str) or self.pattern == "":
            raise PatternError(str(self.pattern), "pattern must be a non-empty string")

        flags = re.IGNORECASE if self.case_insensitive else 0
        try:
            compiled = re.compile(self.pattern, flags)
        except re.error as e:
            raise PatternError(self.pattern, str(e)) from e

        object.__setattr__(self, "_regex", compiled)

    def matches(self, text: str) -> bool:
        """Check whether the pattern occurs in ``text``."""
        return self._regex.search(text) is not None

    def __str__(self) -> str:
        return self.pattern
