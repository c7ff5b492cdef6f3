"""
Tests for anti-bot detection and recovery.
"""

import pytest

from harvester.captcha import ALTERNATE_USER_AGENT, CaptchaGuard, contains_captcha_signal

from conftest import FakeSession


BLOCKED = "<html><body><h1>Security Check</h1><p>Please prove you are human.</p></body></html>"
CLEAN = "<html><body><h1>Projects</h1><p>All listings</p></body></html>"


class TestSignals:
    """Test signal matching."""

    def test_signals_are_case_insensitive(self):
        """Test that signals match regardless of case."""
        assert contains_captcha_signal("Complete the CAPTCHA to continue")
        assert contains_captcha_signal("", '<div class="g-recaptcha"></div>')
        assert contains_captcha_signal("Human Verification required")

    def test_clean_text(self):
        """Test that ordinary text carries no signal."""
        assert not contains_captcha_signal("Project listing", "<table></table>")

    def test_custom_signal_set(self):
        """Test that a reduced signal set ignores other phrases."""
        assert not contains_captcha_signal("Security check", signals=('captcha',))


class TestCaptchaGuard:
    """Test detection and the single recovery attempt."""

    async def test_no_captcha_means_no_recovery(self):
        """Test that a clean page is left alone."""
        session = FakeSession(CLEAN)
        guard = CaptchaGuard(session, recovery_delay=0)

        assert await guard.check_and_recover() is None
        assert session.reloads == 0
        assert session.user_agents == []

    async def test_recovery_rotates_user_agent_and_reloads(self):
        """Test that recovery swaps the user agent and reloads once."""
        session = FakeSession(BLOCKED)
        session.reload_html = CLEAN
        guard = CaptchaGuard(session, recovery_delay=0)

        still_blocked = await guard.check_and_recover()

        assert still_blocked is False
        assert session.user_agents == [ALTERNATE_USER_AGENT]
        assert session.reloads == 1

    async def test_persisting_captcha_is_reported_not_raised(self):
        """Test that a captcha surviving recovery is only reported."""
        session = FakeSession(BLOCKED)
        guard = CaptchaGuard(session, recovery_delay=0)

        assert await guard.check_and_recover() is True
        assert session.reloads == 1

    async def test_recovery_runs_at_most_once(self):
        """Test that a second check does not reload again."""
        session = FakeSession(BLOCKED)
        guard = CaptchaGuard(session, recovery_delay=0)

        await guard.check_and_recover()
        await guard.check_and_recover()

        assert session.reloads == 1
        assert await guard.recover() is False

    async def test_evaluation_failure_counts_as_no_captcha(self):
        """Test that an unreadable page is treated as clean."""
        session = FakeSession(BLOCKED)
        session.evaluate_error = RuntimeError("execution context destroyed")
        guard = CaptchaGuard(session, recovery_delay=0)

        assert await guard.detect() is False
        assert await guard.check_and_recover() is None

    async def test_reload_failure_is_not_fatal(self):
        """Test that a reload that errors out still ends recovery normally."""
        session = FakeSession(BLOCKED)
        session.reload_error = RuntimeError("net::ERR_ABORTED")
        guard = CaptchaGuard(session, recovery_delay=0)

        assert await guard.recover() is True
        assert await guard.check_and_recover() is True
        assert session.user_agents == [ALTERNATE_USER_AGENT]
