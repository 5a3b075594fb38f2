from velofuse import FusedVelocitySample, SlidingWindowBuffer


def test_prune_keeps_records_inside_window():
    buf = SlidingWindowBuffer(horizon=100)
    for t in (0, 40, 99, 100, 150):
        buf.push(FusedVelocitySample(t, 0.0))

    evicted = buf.prune(now=150)
    assert evicted == 2
    assert [r.t for r in buf.snapshot()] == [99, 100, 150]


def test_prune_is_predicate_not_prefix():
    # out-of-order records are evicted individually
    buf = SlidingWindowBuffer(horizon=10)
    for t in (100, 5, 95):
        buf.push(FusedVelocitySample(t, 0.0))
    buf.prune(now=100)
    assert [r.t for r in buf.snapshot()] == [100, 95]


def test_latest_and_clear():
    buf = SlidingWindowBuffer(horizon=10)
    assert buf.latest() is None
    buf.push(FusedVelocitySample(1, 2.0))
    buf.push(FusedVelocitySample(2, 3.0))
    assert buf.latest() == FusedVelocitySample(2, 3.0)
    buf.clear()
    assert len(buf) == 0


def test_snapshot_is_a_copy():
    buf = SlidingWindowBuffer(horizon=10)
    buf.push(FusedVelocitySample(1, 2.0))
    snap = buf.snapshot()
    snap.clear()
    assert len(buf) == 1
