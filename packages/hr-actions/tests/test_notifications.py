import structlog
import structlog.testing

from hr_actions import ACTION_COMPLETED, ACTION_STARTED, ALL_EVENTS, EventBus


class TestEventBus:
    def setup_method(self) -> None:
        self.bus = EventBus()
        self.seen: list[tuple] = []

    def test_listeners_run_in_order(self) -> None:
        self.bus.on(ACTION_STARTED, lambda **kw: self.seen.append(("first", kw["action"])))
        self.bus.on(ACTION_STARTED, lambda **kw: self.seen.append(("second", kw["action"])))
        self.bus.emit(ACTION_STARTED, action="a1")
        assert self.seen == [("first", "a1"), ("second", "a1")]

    def test_other_events_not_delivered(self) -> None:
        self.bus.on(ACTION_STARTED, lambda **kw: self.seen.append(kw))
        self.bus.emit(ACTION_COMPLETED, action="a1", recipients=[])
        assert self.seen == []

    def test_wildcard_receives_event_name(self) -> None:
        self.bus.on(ALL_EVENTS, lambda event, **kw: self.seen.append((event, kw)))
        self.bus.emit(ACTION_COMPLETED, action="a1", recipients=["hr"])
        assert self.seen == [(ACTION_COMPLETED, {"action": "a1", "recipients": ["hr"]})]

    def test_off(self) -> None:
        def listener(**kw) -> None:
            self.seen.append(kw)

        self.bus.on(ACTION_STARTED, listener)
        assert self.bus.off(ACTION_STARTED, listener) is True
        assert self.bus.off(ACTION_STARTED, listener) is False
        self.bus.emit(ACTION_STARTED, action="a1")
        assert self.seen == []

    def test_listener_error_is_logged_and_others_still_run(self) -> None:
        def broken(**kw) -> None:
            raise RuntimeError("mailer down")

        self.bus.on(ACTION_STARTED, broken)
        self.bus.on(ACTION_STARTED, lambda **kw: self.seen.append(("after", kw["action"])))
        self.bus.on(ALL_EVENTS, lambda event, **kw: self.seen.append((event, kw["action"])))
        with structlog.testing.capture_logs() as logs:
            self.bus.emit(ACTION_STARTED, action="a1")

        assert self.seen == [("after", "a1"), (ACTION_STARTED, "a1")]
        failures = [entry for entry in logs if entry["event"] == "action_listener_failed"]
        assert len(failures) == 1
        assert failures[0]["event_name"] == ACTION_STARTED
