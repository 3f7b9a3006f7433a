"""
Unit tests for the metrics module.

Tests cover:
- Counters and drop reason codes
- Histogram statistics and bounding
- Snapshot, reset and the global singleton
- Concurrent updates
"""

import logging
import threading
import time

from ipos_core.metrics import MetricsCollector, get_metrics, reset_metrics


class TestCounters:
    """Tests for counters and drop reasons."""

    def test_standard_counters_start_at_zero(self):
        collector = MetricsCollector()

        snapshot = collector.snapshot()

        for name in ('ranging_cycles', 'filter_predicts', 'filter_corrections', 'fixes_published'):
            assert snapshot.counters[name] == 0
        assert collector.get_counter('never_touched') == 0

    def test_increment(self):
        collector = MetricsCollector()

        collector.increment('ranging_cycles')
        collector.increment('ranging_cycles', 4)

        assert collector.get_counter('ranging_cycles') == 5

    def test_drop_reason_counted(self):
        """Drops are tracked per reason and in the total."""
        collector = MetricsCollector()

        collector.increment_drop('degenerate_geometry')
        collector.increment_drop('insufficient_anchors', 2)

        assert collector.get_drop_count('degenerate_geometry') == 1
        assert collector.get_drop_count('insufficient_anchors') == 2
        assert collector.get_counter('inputs_dropped') == 3
        assert collector.snapshot().total_dropped() == 3

    def test_unknown_drop_reason_warns(self, caplog):
        """Unexpected reason codes are still counted but flagged."""
        collector = MetricsCollector()

        with caplog.at_level(logging.WARNING, logger='ipos_core.metrics.counters'):
            collector.increment_drop('cosmic_ray')

        assert 'cosmic_ray' in caplog.text
        assert collector.get_drop_count('cosmic_ray') == 1

    def test_drop_reasons_initialized(self):
        collector = MetricsCollector()
        snapshot = collector.snapshot()

        for reason in ('insufficient_anchors', 'degenerate_geometry', 'invalid_measurement',
                       'singular_matrix', 'predict_before_init'):
            assert reason in collector.DROP_REASONS
            assert snapshot.drop_reasons[reason] == 0

    def test_drop_rate(self):
        collector = MetricsCollector()
        collector.increment_drop('ranging_failed', 5)
        collector.increment_drop('unknown_anchor', 3)

        assert abs(collector.snapshot().drop_rate(100) - 8.0) < 1e-9
        assert collector.snapshot().drop_rate(0) == 0.0


class TestHistograms:
    """Tests for histogram recording."""

    def test_stats(self):
        collector = MetricsCollector()
        for value in (0.2, 0.4, 0.9):
            collector.record_histogram('solver_residual_m', value)

        stats = collector.get_histogram_stats('solver_residual_m')

        assert stats['count'] == 3
        assert stats['min'] == 0.2
        assert stats['max'] == 0.9
        assert abs(stats['mean'] - 0.5) < 1e-9

    def test_empty_histogram(self):
        assert MetricsCollector().get_histogram_stats('filter_innovation_m') is None

    def test_percentiles(self):
        collector = MetricsCollector()
        for i in range(100):
            collector.record_histogram('published_sigma_m', float(i))

        stats = collector.get_histogram_stats('published_sigma_m')

        assert 49 < stats['median'] < 51
        assert 94 < stats['p95'] < 96
        assert 98 < stats['p99'] < 100

    def test_bounded(self):
        """Histograms keep the most recent half once full."""
        collector = MetricsCollector()
        for i in range(3000):
            collector.record_histogram('filter_innovation_m', float(i), max_samples=1000)

        samples = collector.snapshot().histograms['filter_innovation_m']

        assert len(samples) <= 1000
        assert samples[-1] == 2999.0


class TestSnapshotAndReset:
    """Tests for snapshot copies and reset."""

    def test_snapshot_is_copy(self):
        collector = MetricsCollector()
        collector.increment('fixes_published', 2)
        first = collector.snapshot()

        collector.increment('fixes_published', 3)

        assert first.counters['fixes_published'] == 2
        assert collector.snapshot().counters['fixes_published'] == 5

    def test_snapshot_timestamp(self):
        collector = MetricsCollector()

        before = time.time()
        snapshot = collector.snapshot()

        assert before <= snapshot.timestamp <= time.time()

    def test_reset(self):
        collector = MetricsCollector()
        collector.increment('filter_resets', 7)
        collector.increment_drop('observer_error')
        collector.record_histogram('published_sigma_m', 1.0)

        collector.reset()

        snapshot = collector.snapshot()
        assert snapshot.counters['filter_resets'] == 0
        assert snapshot.total_dropped() == 0
        assert not snapshot.histograms

    def test_global_singleton(self):
        first = get_metrics()
        first.increment('solver_attempts', 42)

        assert get_metrics() is first
        assert get_metrics().get_counter('solver_attempts') == 42

        reset_metrics()

        assert get_metrics() is not first
        assert get_metrics().get_counter('solver_attempts') == 0


class TestThreadSafety:
    """Tests for concurrent updates."""

    def test_concurrent_increments(self):
        collector = MetricsCollector()
        num_threads = 8
        per_thread = 500

        def worker():
            for _ in range(per_thread):
                collector.increment('displacement_events')
                collector.increment_drop('predict_before_init')

        threads = [threading.Thread(target=worker) for _ in range(num_threads)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert collector.get_counter('displacement_events') == num_threads * per_thread
        assert collector.get_drop_count('predict_before_init') == num_threads * per_thread


class TestSummary:
    """Tests for the human-readable summary."""

    def test_summary_lists_counters_and_drops(self, capsys):
        collector = MetricsCollector()
        collector.increment('ranging_cycles', 10)
        collector.increment_drop('insufficient_anchors', 2)
        collector.record_histogram('solver_residual_m', 0.3)

        collector.print_summary()

        out = capsys.readouterr().out
        assert 'METRICS SUMMARY' in out
        assert 'ranging_cycles' in out
        assert 'insufficient_anchors' in out
        assert 'solver_residual_m' in out
