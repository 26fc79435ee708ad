import pytest

from autoai.core.perf import (
    TAG_DECISION,
    TAG_PERCEPTION,
    PerformanceMonitor,
)


def test_stats_aggregate_samples():
    monitor = PerformanceMonitor()
    for value in (10, 20, 60):
        monitor.record(TAG_PERCEPTION, value)

    stats = monitor.stats(TAG_PERCEPTION)

    assert stats.count == 3
    assert stats.avg_ms == pytest.approx(30.0)
    assert stats.min_ms == 10
    assert stats.max_ms == 60
    assert stats.total_ms == 90
    assert monitor.stats(TAG_DECISION) is None


def test_samples_are_capped():
    monitor = PerformanceMonitor(max_samples=2)
    for value in (100, 1, 2):
        monitor.record(TAG_DECISION, value)

    stats = monitor.stats(TAG_DECISION)

    assert stats.count == 2
    assert stats.max_ms == 2


@pytest.mark.asyncio
async def test_measure_records_even_when_body_raises():
    monitor = PerformanceMonitor()

    with pytest.raises(RuntimeError):
        async with monitor.measure(TAG_PERCEPTION):
            raise RuntimeError("boom")

    assert monitor.stats(TAG_PERCEPTION).count == 1


def test_report_and_clear():
    monitor = PerformanceMonitor()
    assert "暂无数据" in monitor.report()

    monitor.record(TAG_DECISION, 15)
    report = monitor.report()
    assert report.startswith("=== 性能统计 ===")
    assert "decision: 次数=1" in report

    monitor.clear()
    assert monitor.all_stats() == {}
