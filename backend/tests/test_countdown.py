"""
Tests for the assessment countdown
"""
import asyncio

import pytest
from unittest.mock import Mock

from proctoring.services.countdown import AssessmentCountdown


class TestCountdown:
    """Test countdown ticking, pausing and expiry"""

    @pytest.mark.asyncio
    async def test_expires_once(self):
        on_expire = Mock()
        countdown = AssessmentCountdown(3, on_expire=on_expire, tick_seconds=3600)
        countdown.start()

        countdown.tick()
        countdown.tick()
        on_expire.assert_not_called()
        countdown.tick()
        countdown.tick()

        on_expire.assert_called_once_with()
        assert countdown.remaining_seconds == 0
        assert countdown.expired
        assert not countdown.running

    @pytest.mark.asyncio
    async def test_paused_countdown_does_not_decrement(self):
        countdown = AssessmentCountdown(10, tick_seconds=3600)
        countdown.start()

        countdown.pause()
        countdown.tick()
        assert countdown.remaining_seconds == 10

        countdown.resume()
        countdown.tick()
        assert countdown.remaining_seconds == 9
        countdown.stop()

    @pytest.mark.asyncio
    async def test_stop_cancels_timer(self):
        countdown = AssessmentCountdown(10, tick_seconds=3600)
        countdown.start()
        assert countdown.running

        countdown.stop()

        assert not countdown.running

    @pytest.mark.asyncio
    async def test_real_timer(self):
        on_expire = Mock()
        countdown = AssessmentCountdown(2, on_expire=on_expire, tick_seconds=0.01)
        countdown.start()

        for _ in range(100):
            if on_expire.called:
                break
            await asyncio.sleep(0.01)

        on_expire.assert_called_once_with()
        assert not countdown.running
