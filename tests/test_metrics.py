from prometheus_client import REGISTRY

from rentbooks import metrics


def _value(name: str, labels: dict | None = None) -> float:
    return REGISTRY.get_sample_value(name, labels or {}) or 0.0


def test_helpers_increment_counters():
    before = _value("tax_projections_created_total", {"tax_type": "PIS"})
    metrics.tax_projection_created("PIS")
    assert _value("tax_projections_created_total", {"tax_type": "PIS"}) == before + 1

    before = _value("composite_transactions_total", {"category": "management"})
    metrics.composite_transaction_created("management")
    assert _value("composite_transactions_total", {"category": "management"}) == before + 1


def test_calculation_timer_observes():
    before = _value("tax_calculation_seconds_count")
    with metrics.time_tax_calculation():
        pass
    assert _value("tax_calculation_seconds_count") == before + 1


def test_metrics_endpoint_available(client):
    resp = client.get("/metrics")
    assert resp.status_code == 200
    for name in (
        "tax_projections_created_total",
        "tax_projections_confirmed_total",
        "tax_recalculations_total",
        "composite_transactions_total",
        "tax_calculation_seconds_bucket",
    ):
        assert name in resp.text
