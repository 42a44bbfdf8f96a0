"""Tests for the polling loop connecting ActivityWatch to the tracker."""

from datetime import timedelta
from unittest.mock import Mock

import pytest

from aw_export_solidtime.activity import ActivityUpdate
from aw_export_solidtime.agent import Agent
from aw_export_solidtime.tracker import TrackerState


def scripted_source(*updates: ActivityUpdate) -> Mock:
    source = Mock()
    source.poll.side_effect = list(updates)
    return source


class TestAgentTick:
    def test_activity_is_forwarded(self, make_tracker, clock) -> None:
        tracker = make_tracker()
        agent = Agent(tracker, scripted_source(ActivityUpdate(activity=True)))
        agent.tick()
        assert tracker.current_slice is not None
        assert tracker.events[-1] == "activity"
        agent.source.poll.assert_called_once_with(clock())

    def test_no_activity_no_slice(self, make_tracker) -> None:
        tracker = make_tracker()
        Agent(tracker, scripted_source(ActivityUpdate())).tick()
        assert tracker.current_slice is None

    def test_tick_drives_beat(self, make_tracker, store, clock) -> None:
        tracker = make_tracker()
        agent = Agent(
            tracker,
            scripted_source(ActivityUpdate(activity=True), ActivityUpdate(activity=True)),
        )
        agent.tick()
        clock.advance(minutes=1)
        agent.tick()
        assert [c[0] for c in store.writes()] == ["create"]

    def test_focus_lost_stops_tracker(self, make_tracker, store, clock) -> None:
        tracker = make_tracker()
        agent = Agent(
            tracker,
            scripted_source(
                ActivityUpdate(activity=True, focused=True),
                ActivityUpdate(focused=False),
            ),
        )
        agent.tick()
        clock.advance(seconds=20)
        agent.tick()
        assert tracker.state == TrackerState.STOPPED
        assert store.entries[0].end == clock()

    def test_focus_regained_resumes_tracker(self, make_tracker) -> None:
        tracker = make_tracker()
        agent = Agent(
            tracker,
            scripted_source(ActivityUpdate(focused=False), ActivityUpdate(focused=True)),
        )
        agent.tick()
        assert tracker.state == TrackerState.STOPPED
        tracker.events.clear()
        agent.tick()
        assert tracker.state == TrackerState.ACTIVE
        assert tracker.events == ["init", "resume"]

    def test_unknown_focus_changes_nothing(self, make_tracker) -> None:
        tracker = make_tracker()
        agent = Agent(tracker, scripted_source(ActivityUpdate(focused=None)))
        agent.tick()
        assert tracker.state == TrackerState.ACTIVE

    def test_paused_tracker_not_resumed_by_focus(self, make_tracker) -> None:
        tracker = make_tracker()
        tracker.pause()
        agent = Agent(
            tracker,
            scripted_source(ActivityUpdate(focused=False), ActivityUpdate(focused=True)),
        )
        agent.tick()
        agent.tick()
        assert tracker.state == TrackerState.PAUSED

    def test_repeated_focus_is_not_a_change(self, make_tracker) -> None:
        tracker = make_tracker()
        agent = Agent(
            tracker,
            scripted_source(ActivityUpdate(focused=True), ActivityUpdate(focused=True)),
        )
        agent.tick()
        tracker.stop()
        agent.tick()
        assert tracker.state == TrackerState.STOPPED


class TestAgentRun:
    def test_run_limited_ticks_sleeps_between(self, make_tracker, monkeypatch) -> None:
        sleeps = []
        from aw_export_solidtime import agent as agent_module

        monkeypatch.setattr(agent_module, "sleep", sleeps.append)
        tracker = make_tracker()
        agent = Agent(tracker, scripted_source(*[ActivityUpdate()] * 3), poll_interval=2.5)
        agent.run(max_ticks=3)
        assert sleeps == [2.5, 2.5]
        assert tracker.disposed

    def test_run_flushes_on_exit(self, make_tracker, store, clock) -> None:
        tracker = make_tracker()
        clock.advance(seconds=10)
        Agent(tracker, scripted_source(ActivityUpdate(activity=True))).run(max_ticks=1)
        assert store.entries[0].start == clock()
        assert store.entries[0].end == clock()

    def test_interrupt_still_disposes(self, make_tracker, store, clock) -> None:
        tracker = make_tracker()
        source = Mock()
        source.poll.side_effect = [ActivityUpdate(activity=True), KeyboardInterrupt()]
        agent = Agent(tracker, source)

        def advance(seconds):
            clock.advance(seconds=30)

        from aw_export_solidtime import agent as agent_module

        with pytest.MonkeyPatch.context() as mp:
            mp.setattr(agent_module, "sleep", advance)
            with pytest.raises(KeyboardInterrupt):
                agent.run()

        assert tracker.disposed
        assert store.entries[0].end - store.entries[0].start == timedelta(seconds=30)
