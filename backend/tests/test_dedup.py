from threat_monitor.services.dedup import MessageDeduplicator, content_hash


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_duplicate_within_window_is_skipped():
    clock = FakeClock()
    dedup = MessageDeduplicator(window_seconds=60, clock=clock)

    assert dedup.should_process(1, "Ракети на Київ") is True
    clock.now += 59
    assert dedup.should_process(1, "Ракети на Київ") is False


def test_same_text_after_window_is_processed():
    clock = FakeClock()
    dedup = MessageDeduplicator(window_seconds=60, clock=clock)

    dedup.should_process(1, "Ракети на Київ")
    clock.now += 60
    assert dedup.should_process(1, "Ракети на Київ") is True


def test_key_includes_channel():
    dedup = MessageDeduplicator(clock=FakeClock())
    assert dedup.should_process(1, "текст") is True
    assert dedup.should_process(2, "текст") is True


def test_case_and_surrounding_whitespace_are_ignored():
    dedup = MessageDeduplicator(clock=FakeClock())
    assert dedup.should_process(1, "  Шахеди на Одесу ") is True
    assert dedup.should_process(1, "шахеди на одесу") is False
    assert content_hash("A ") == content_hash("a")


def test_capacity_evicts_oldest_inserted():
    clock = FakeClock()
    dedup = MessageDeduplicator(window_seconds=60, max_entries=2, clock=clock)

    for text in ("a", "b", "c"):
        dedup.should_process(1, text)
        clock.now += 1

    assert len(dedup) == 2
    assert dedup.should_process(1, "c") is False
    # "a" was evicted, so it is new again and pushes "b" out
    assert dedup.should_process(1, "a") is True
    assert dedup.should_process(1, "b") is True
