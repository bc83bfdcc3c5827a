"""
Keyword Matcher

Classifies a log line as match / no match for a switch's keyword list.
Lines and keywords are normalized the same way (ANSI and control codes
stripped, case-folded). Keywords are always matched as literal text,
never as regular expressions.
"""
import re
from typing import Iterable, List, Optional, Pattern, Tuple

# CSI sequences (colors, cursor movement), OSC sequences (terminated by BEL
# or ST), two-byte escapes, and the 8-bit CSI introducer
ANSI_PATTERN = re.compile(
    r"(?:\x1b\[|\x9b)[0-?]*[ -/]*[@-~]"
    r"|\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)"
    r"|\x1b[@-Z\\-_]"
)

# Remaining C0 controls and DEL, except tab
CONTROL_PATTERN = re.compile(r"[\x00-\x08\x0a-\x1f\x7f]")


def strip_ansi(text: str) -> str:
    """Remove ANSI escape sequences and control characters"""
    return CONTROL_PATTERN.sub("", ANSI_PATTERN.sub("", text))


def normalize(text: str) -> str:
    return strip_ansi(text).casefold()


class KeywordMatcher:
    """Literal, case-insensitive substring matcher for one keyword list"""

    def __init__(self, keywords: Iterable[str]):
        """
        Args:
            keywords: Keywords in priority order; blank entries are ignored
        """
        self.keywords: List[str] = [k for k in keywords if k and normalize(k)]
        self._patterns: List[Tuple[str, Pattern[str]]] = [
            (keyword, re.compile(re.escape(normalize(keyword))))
            for keyword in self.keywords
        ]

    def match(self, line: str) -> Optional[str]:
        """
        Find the first keyword contained in the line

        Returns:
            The configured keyword that matched, or None
        """
        if not self._patterns:
            return None

        cleaned = normalize(line)
        for keyword, pattern in self._patterns:
            if pattern.search(cleaned):
                return keyword
        return None

    def matches(self, line: str) -> bool:
        return self.match(line) is not None

    def __bool__(self) -> bool:
        return bool(self._patterns)
