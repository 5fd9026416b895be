"""
Tests for fullscreen change signals and the devtools heuristic
"""
import pytest

from proctoring.models.violation import ViolationKind
from proctoring.services.fullscreen_controller import FullscreenPauseController
from proctoring.signals.devtools import WindowMetrics, detect_devtools
from proctoring.signals.fullscreen import FullscreenSignal

from conftest import logged_kinds


DOCKED_DEVTOOLS = WindowMetrics(outer_width=1920, outer_height=1080, inner_width=1920, inner_height=700)
NORMAL_WINDOW = WindowMetrics(outer_width=1920, outer_height=1080, inner_width=1920, inner_height=970)


class TestDevtoolsHeuristic:
    """Test size-based devtools detection"""

    def test_docked_devtools(self):
        assert detect_devtools(DOCKED_DEVTOOLS, threshold=160)

    def test_browser_chrome_only(self):
        assert not detect_devtools(NORMAL_WINDOW, threshold=160)

    def test_side_docked(self):
        window = WindowMetrics(outer_width=1920, outer_height=1080, inner_width=1500, inner_height=980)
        assert detect_devtools(window, threshold=160)

    def test_exactly_at_threshold(self):
        window = WindowMetrics(outer_width=1920, outer_height=1080, inner_width=1760, inner_height=920)
        assert not detect_devtools(window, threshold=160)


@pytest.fixture
def controller():
    controller = FullscreenPauseController(ceiling_seconds=300, tick_seconds=3600)
    yield controller
    controller.stop()


class TestFullscreenSignal:
    """Test fullscreen exit logging"""

    @pytest.mark.asyncio
    async def test_exit_logs_violation(self, mock_engine, controller):
        controller.set_required(True, is_fullscreen=True)
        signal = FullscreenSignal(mock_engine, controller)

        assert signal.handle_change(False)

        assert mock_engine.log_violation.call_args.args == (
            ViolationKind.FULLSCREEN_EXIT, {"exit_count": 1}
        )
        assert controller.paused

    @pytest.mark.asyncio
    async def test_exit_with_devtools(self, mock_engine, controller):
        controller.set_required(True, is_fullscreen=True)
        signal = FullscreenSignal(mock_engine, controller, devtools_threshold=160)

        signal.handle_change(False, DOCKED_DEVTOOLS)

        assert logged_kinds(mock_engine) == [ViolationKind.FULLSCREEN_EXIT, ViolationKind.DEVTOOLS_OPEN]
        _, details = mock_engine.log_violation.call_args.args
        assert details["height_diff"] == 380

    @pytest.mark.asyncio
    async def test_exit_without_devtools(self, mock_engine, controller):
        controller.set_required(True, is_fullscreen=True)
        signal = FullscreenSignal(mock_engine, controller, devtools_threshold=160)

        signal.handle_change(False, NORMAL_WINDOW)

        assert logged_kinds(mock_engine) == [ViolationKind.FULLSCREEN_EXIT]

    @pytest.mark.asyncio
    async def test_entering_fullscreen_logs_nothing(self, mock_engine, controller):
        controller.set_required(True, is_fullscreen=False)
        signal = FullscreenSignal(mock_engine, controller)

        assert not signal.handle_change(True, DOCKED_DEVTOOLS)
        mock_engine.log_violation.assert_not_called()
        assert not controller.paused

    @pytest.mark.asyncio
    async def test_exit_when_not_required(self, mock_engine, controller):
        controller.handle_fullscreen_change(True)
        signal = FullscreenSignal(mock_engine, controller)

        assert not signal.handle_change(False)
        mock_engine.log_violation.assert_not_called()

    @pytest.mark.asyncio
    async def test_stopped_signal(self, mock_engine, controller):
        controller.set_required(True, is_fullscreen=True)
        signal = FullscreenSignal(mock_engine, controller)
        signal.stop()

        assert not signal.handle_change(False)
        assert not controller.paused
        mock_engine.log_violation.assert_not_called()
