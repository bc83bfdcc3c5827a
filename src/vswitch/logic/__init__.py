"""
vswitch Switch Logic

This module contains the core switching logic:
- Switch controller state machine with auto-off timers
- Keyword matcher and feedback filter for log lines
- Log tail watchers feeding the registry
- Registry owning all switches
"""

from vswitch.logic.keywords import KeywordMatcher, strip_ansi
from vswitch.logic.feedback import FeedbackFilter
from vswitch.logic.log_tail import LogTail
from vswitch.logic.switch_controller import SwitchController
from vswitch.logic.registry import SwitchRegistry, SwitchStateChange

__all__ = [
    "KeywordMatcher",
    "strip_ansi",
    "FeedbackFilter",
    "LogTail",
    "SwitchController",
    "SwitchRegistry",
    "SwitchStateChange",
]
