from app import system_metrics


def test_metrics_snapshot_counts_and_averages():
    system_metrics.reset_metrics()
    system_metrics.increment_metric("responses_recorded")
    system_metrics.increment_metric("violations_tab_change", 2)
    system_metrics.decrement_metric("sessions_active")
    system_metrics.observe_scoring_latency_ms(10.0)
    system_metrics.observe_scoring_latency_ms(30.0)

    snapshot = system_metrics.get_metrics_snapshot(extra={"sessions_registered": 3})

    assert snapshot["responses_recorded"] == 1
    assert snapshot["violations_total"] == 2
    assert snapshot["sessions_active"] == 0
    assert snapshot["avg_scoring_latency_ms"] == 20.0
    assert snapshot["sessions_registered"] == 3
    system_metrics.reset_metrics()
