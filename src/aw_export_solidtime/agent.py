"""The polling loop that connects ActivityWatch to the tracker."""

import logging
from time import sleep

from .activity import ActivityWatchSource
from .tracker import TimeTrackerService, TrackerState

logger = logging.getLogger(__name__)


class Agent:
    """Feeds activity and focus changes into a tracker and drives its beat.

    Focus gained resumes a stopped tracker, focus lost stops it. An explicitly
    paused tracker is left alone until resumed by hand.
    """

    def __init__(
        self,
        tracker: TimeTrackerService,
        source: ActivityWatchSource,
        poll_interval: float = 5.0,
    ) -> None:
        self.tracker = tracker
        self.source = source
        self.poll_interval = poll_interval
        self.focused: bool | None = None

    def _handle_focus(self, focused: bool | None) -> None:
        if focused is None or focused == self.focused:
            return
        self.focused = focused
        state = self.tracker.state
        if focused and state == TrackerState.STOPPED:
            logger.info("Editor focused, resuming tracker")
            self.tracker.resume()
        elif not focused and state == TrackerState.ACTIVE:
            logger.info("Editor lost focus, stopping tracker")
            self.tracker.stop()

    def tick(self) -> None:
        """Poll the source once and let the tracker run a due beat."""
        update = self.source.poll(self.tracker.clock())
        self._handle_focus(update.focused)
        if update.activity:
            self.tracker.on_activity()
        self.tracker.tick()

    def run(self, max_ticks: int | None = None) -> None:
        """Loop until interrupted (or max_ticks polls); always disposes the tracker.

        KeyboardInterrupt propagates after the final flush.
        """
        ticks = 0
        try:
            while max_ticks is None or ticks < max_ticks:
                self.tick()
                ticks += 1
                if max_ticks is None or ticks < max_ticks:
                    sleep(self.poll_interval)
        finally:
            logger.info("Agent shutting down, flushing tracker")
            self.tracker.dispose()
