from aura_agent.lifecycle.tracker import RequestTracker


def test_newer_token_supersedes_older() -> None:
    tracker = RequestTracker("simplification")

    first = tracker.issue_token()
    second = tracker.issue_token()

    assert second > first
    assert tracker.is_current(second)
    assert not tracker.is_current(first)


def test_invalidate_makes_every_token_stale() -> None:
    tracker = RequestTracker()
    token = tracker.issue_token()

    tracker.invalidate()

    assert not tracker.is_current(token)
    assert tracker.issue_token() > token + 1
