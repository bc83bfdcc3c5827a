"""
Feedback-loop filter

A daemon that watches the same log it writes to would otherwise trigger
switches from its own status lines. Lines are dropped when they look like
our own diagnostics, or when they name the very switch being monitored.
"""
from typing import Iterable, Tuple

# Plain "DEBUG:"/"ERROR:" prefixes plus the level tags of the console renderer
DIAGNOSTIC_MARKERS: Tuple[str, ...] = ("debug:", "error:", "[debug", "[error")


class FeedbackFilter:
    """Recognizes log lines emitted by this daemon"""

    def __init__(self, tokens: Iterable[str]):
        """
        Args:
            tokens: Identifying tokens for this software (case-insensitive)
        """
        self.tokens = tuple(t.casefold() for t in tokens if t)

    def _has_token(self, folded: str) -> bool:
        return any(token in folded for token in self.tokens)

    def is_diagnostic(self, line: str) -> bool:
        """A diagnostic line (debug/error marker) written by this daemon"""
        folded = line.casefold()
        return self._has_token(folded) and any(m in folded for m in DIAGNOSTIC_MARKERS)

    def mentions_switch(self, line: str, switch_name: str) -> bool:
        """A line written by this daemon about the given switch"""
        folded = line.casefold()
        return self._has_token(folded) and switch_name.casefold() in folded

    def is_own_line(self, line: str, switch_name: str) -> bool:
        """True if the line must not be matched against the switch's keywords"""
        return self.is_diagnostic(line) or self.mentions_switch(line, switch_name)
