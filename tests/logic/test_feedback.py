"""
Tests for the feedback-loop filter.
"""
import pytest

from vswitch.logic.feedback import FeedbackFilter


@pytest.fixture
def feedback():
    return FeedbackFilter(["vswitch", "HomebridgeVirtualSwitches"])


class TestFeedbackFilter:

    def test_own_debug_line(self, feedback):
        assert feedback.is_diagnostic("[vswitch] DEBUG: keyword matched") is True

    def test_own_error_line(self, feedback):
        assert feedback.is_diagnostic("[HomebridgeVirtualSwitches] ERROR: tail exited") is True

    def test_console_renderer_level_tag(self, feedback):
        line = "2024-01-01T00:00:00Z [debug    ] keyword_matched [vswitch.logic.registry]"
        assert feedback.is_diagnostic(line) is True

    def test_other_plugin_debug_line(self, feedback):
        assert feedback.is_diagnostic("[Ring] DEBUG: doorbell pressed") is False

    def test_own_info_line_without_marker(self, feedback):
        assert feedback.is_diagnostic("[vswitch] started") is False

    def test_mentions_switch(self, feedback):
        line = "[vswitch] Doorbell turned on"

        assert feedback.mentions_switch(line, "Doorbell") is True
        assert feedback.mentions_switch(line, "Alarm") is False

    def test_mentions_switch_case_insensitive(self, feedback):
        assert feedback.mentions_switch("[VSWITCH] DOORBELL turned on", "Doorbell") is True

    def test_foreign_line_naming_switch(self, feedback):
        """Other software may name the switch; that is a real event."""
        assert feedback.is_own_line("[Ring] Doorbell pressed", "Doorbell") is False

    def test_is_own_line(self, feedback):
        assert feedback.is_own_line("[vswitch] ERROR: something", "Alarm") is True
        assert feedback.is_own_line("[vswitch] Doorbell turned off", "Doorbell") is True
        assert feedback.is_own_line("[vswitch] Doorbell turned off", "Alarm") is False

    def test_no_tokens(self):
        assert FeedbackFilter([]).is_own_line("DEBUG: Doorbell", "Doorbell") is False
