"""
Metrics Module: Diagnostics, counters, histograms.

- Counters: ranging_cycles, displacement_events, fixes_published, etc.
- Histograms: solver residuals, filter innovations, published sigma
- Drop reason codes (no silent failures)

Usage:
    from ipos_core.metrics import get_metrics

    metrics = get_metrics()
    metrics.increment('ranging_cycles')
    metrics.increment_drop('insufficient_anchors')
    metrics.record_histogram('solver_residual_m', 0.12)
"""

from .counters import MetricsCollector

# Global singleton for easy access
_global_metrics = None


def get_metrics() -> MetricsCollector:
    """
    Get the global metrics collector singleton.

    Returns:
        MetricsCollector instance
    """
    global _global_metrics
    if _global_metrics is None:
        _global_metrics = MetricsCollector()
    return _global_metrics


def reset_metrics():
    """Reset global metrics (for testing)."""
    global _global_metrics
    _global_metrics = MetricsCollector()


__all__ = ['MetricsCollector', 'get_metrics', 'reset_metrics']
