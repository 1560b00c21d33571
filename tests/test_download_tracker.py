from mediarepo.download_tracker import DownloadTracker

MINUTE = 60_000


class FakeClock:
    def __init__(self):
        self.now = 0

    def __call__(self):
        return self.now


def make_tracker(max_age=5):
    clock = FakeClock()
    return DownloadTracker(max_age, clock=clock), clock


def test_unknown_record_has_no_downloads():
    tracker, _ = make_tracker()
    assert tracker.num_downloads("missing") == 0


def test_increment_counts_within_bucket():
    tracker, _ = make_tracker()
    results = [tracker.increment("a") for _ in range(3)]
    assert results == [1, 2, 3]
    assert tracker.num_downloads("a") == 3


def test_increments_across_buckets_are_summed():
    tracker, clock = make_tracker()
    tracker.increment("a")
    clock.now = 2 * MINUTE
    tracker.increment("a")
    assert tracker.num_downloads("a") == 2


def test_old_buckets_are_trimmed():
    tracker, clock = make_tracker(max_age=5)
    tracker.increment("a")
    clock.now = 3 * MINUTE
    assert tracker.increment("a") == 2
    clock.now = 7 * MINUTE
    assert tracker.num_downloads("a") == 1


def test_record_expires_entirely():
    tracker, clock = make_tracker(max_age=5)
    tracker.increment("a")
    clock.now = 20 * MINUTE
    assert tracker.num_downloads("a") == 0


def test_records_are_independent():
    tracker, _ = make_tracker()
    tracker.increment("a")
    tracker.increment("a")
    tracker.increment("b")
    assert tracker.num_downloads("a") == 2
    assert tracker.num_downloads("b") == 1


def test_reset_forgets_everything():
    tracker, _ = make_tracker()
    tracker.increment("a")
    tracker.reset()
    assert tracker.num_downloads("a") == 0