"""
Tests для CheckRunner.

Свойства:
- Пустой набор -> пустой проходящий отчёт
- N проверок -> N результатов в порядке входа при любом параллелизме
- Ошибки утверждений независимы (collect-all, без short-circuit)
- Ошибки транспорта и таймауты остаются внутри отчёта
- Только ошибки конфигурации выходят за пределы run()
"""

import asyncio

import pytest
from hypothesis import given, settings, strategies as st

from site_audit.config import AuditConfig
from site_audit.core.exceptions import ConfigurationError
from site_audit.core.models import CheckMode, CheckSpec
from site_audit.runner import CANCELLED_MESSAGE, CheckRunner, run, run_sync

from conftest import FakeFetcher, HttpOnlyFetcher, http_response, page_snapshot


EXAMPLE_URL = "https://example.test/"


def example_spec(**kwargs):
    params = {
        "target": EXAMPLE_URL,
        "mode": CheckMode.HTTP,
        "expected_status": {200},
        "expected_body_contains": ["Example"],
    }
    params.update(kwargs)
    return CheckSpec(**params)


# ═══════════════════════════════════════════════════════
# SCENARIOS
# ═══════════════════════════════════════════════════════

class TestScenarios:

    @pytest.mark.asyncio
    async def test_empty_specs(self, fake_fetcher):
        report = await run([], fake_fetcher)

        assert report.results == ()
        assert report.passed
        assert report.total == 0
        assert fake_fetcher.calls == []

    @pytest.mark.asyncio
    async def test_example_domain_passes(self, fake_fetcher):
        fake_fetcher.responses[EXAMPLE_URL] = {"status": 200, "body": "<html>Example Domain</html>"}

        report = await run([example_spec()], fake_fetcher)
        result = report.results[0]

        assert result.passed
        assert result.failures == ()
        assert result.observed_status == 200
        assert result.observed_latency_ms is not None

    @pytest.mark.asyncio
    async def test_redirect_status_fails(self, fake_fetcher):
        fake_fetcher.responses[EXAMPLE_URL] = {"status": 301, "body": "<html>Example Domain</html>"}

        report = await run([example_spec()], fake_fetcher)
        result = report.results[0]

        assert not result.passed
        assert result.failures == ("status 301 not in {200}",)
        assert not report.passed

    @pytest.mark.asyncio
    async def test_404_produces_single_status_failure(self, fake_fetcher):
        fake_fetcher.responses[EXAMPLE_URL] = http_response(
            status=404,
            body="<html>Example Domain</html>",
            headers={"Content-Type": "text/html"},
            latency_ms=20,
        )
        spec = example_spec(expected_headers={"content-type": "text/html"}, max_response_time_ms=1000)

        report = await run([spec], fake_fetcher)

        assert report.results[0].failures == ("status 404 not in {200}",)

    @pytest.mark.asyncio
    async def test_all_assertions_satisfied(self, fake_fetcher):
        fake_fetcher.responses[EXAMPLE_URL] = http_response(
            body="<html>Example Domain</html>",
            headers={"Content-Type": "text/html; charset=UTF-8", "Cache-Control": "max-age=600"},
            latency_ms=40,
        )
        spec = example_spec(
            expected_headers={"content-type": "text/html", "cache-control": "max-age"},
            expected_body_contains=["Example", "Domain"],
            max_response_time_ms=500,
        )

        report = await run([spec], fake_fetcher)

        assert report.results[0].passed
        assert report.results[0].observed_headers["cache-control"] == "max-age=600"

    @pytest.mark.asyncio
    async def test_ui_mode_uses_navigate(self, fake_fetcher):
        fake_fetcher.pages[EXAMPLE_URL] = page_snapshot(
            body_text="Example Domain",
            title="Example Domain",
            url="https://example.test/",
        )
        spec = CheckSpec(
            target=EXAMPLE_URL,
            mode=CheckMode.UI,
            expected_title_contains="Example",
            expected_url_contains="example.test",
        )

        report = await run([spec], fake_fetcher)

        assert report.results[0].passed
        assert fake_fetcher.calls == [("navigate", EXAMPLE_URL)]
        assert report.results[0].observed_url == "https://example.test/"


# ═══════════════════════════════════════════════════════
# TRANSPORT FAILURES
# ═══════════════════════════════════════════════════════

class TestTransportFailures:

    @pytest.mark.asyncio
    async def test_fetcher_error_is_recorded(self, fake_fetcher):
        fake_fetcher.responses[EXAMPLE_URL] = ConnectionError("network unreachable")
        fake_fetcher.responses["https://example.test/ok"] = {"status": 200, "body": "Example"}
        specs = [example_spec(), example_spec(target="https://example.test/ok")]

        report = await run(specs, fake_fetcher)
        failed, ok = report.results

        assert not failed.passed
        assert failed.transport_error
        assert failed.failures == ("transport error: ConnectionError: network unreachable",)
        assert failed.observed_status is None
        assert ok.passed

    @pytest.mark.asyncio
    async def test_unknown_route_is_transport_failure(self, fake_fetcher):
        report = await run([example_spec(target="https://nowhere.test/")], fake_fetcher)

        assert report.results[0].transport_error
        assert report.results[0].failures[0].startswith("transport error: TransportError")

    @pytest.mark.asyncio
    async def test_timeout_derived_from_latency_bound(self, fake_fetcher):
        fake_fetcher.responses[EXAMPLE_URL] = {"status": 200, "body": "Example"}
        fake_fetcher.delays[EXAMPLE_URL] = 1.0
        spec = example_spec(max_response_time_ms=50)

        report = await run([spec], fake_fetcher, timeout_factor=2.0)
        result = report.results[0]

        assert result.transport_error
        assert result.failures == ("transport error: timed out after 0.1s",)

    @pytest.mark.asyncio
    async def test_default_timeout_without_latency_bound(self, fake_fetcher):
        fake_fetcher.responses[EXAMPLE_URL] = {"status": 200, "body": "Example"}
        fake_fetcher.delays[EXAMPLE_URL] = 1.0

        report = await run([example_spec()], fake_fetcher, default_timeout_seconds=0.05)

        assert report.results[0].failures == ("transport error: timed out after 0.05s",)

    @pytest.mark.asyncio
    async def test_fetcher_timeout_keeps_its_own_message(self, fake_fetcher):
        fake_fetcher.responses[EXAMPLE_URL] = TimeoutError("read timed out after 2s")

        report = await run([example_spec()], fake_fetcher, default_timeout_seconds=30)
        result = report.results[0]

        assert result.transport_error
        assert result.failures == ("transport error: TimeoutError: read timed out after 2s",)

    @pytest.mark.asyncio
    async def test_slow_but_finished_response_is_latency_failure(self, fake_fetcher):
        fake_fetcher.responses[EXAMPLE_URL] = http_response(body="Example", latency_ms=150)
        spec = example_spec(max_response_time_ms=100)

        report = await run([spec], fake_fetcher)

        assert report.results[0].failures == ("latency 150ms exceeds 100ms",)
        assert not report.results[0].transport_error

    @pytest.mark.asyncio
    async def test_malformed_response_is_transport_failure(self, fake_fetcher):
        fake_fetcher.responses[EXAMPLE_URL] = {"body": "Example"}

        report = await run([example_spec()], fake_fetcher)

        assert report.results[0].transport_error
        assert "response has no status" in report.results[0].failures[0]


# ═══════════════════════════════════════════════════════
# CONFIGURATION ERRORS
# ═══════════════════════════════════════════════════════

class TestConfigurationErrors:

    @pytest.mark.asyncio
    async def test_missing_fetcher(self):
        with pytest.raises(ConfigurationError):
            await run([example_spec()], None)

    @pytest.mark.asyncio
    async def test_missing_navigate_for_ui_checks(self):
        fetcher = HttpOnlyFetcher()
        specs = [example_spec(), CheckSpec(target=EXAMPLE_URL, mode=CheckMode.UI, expected_title_contains="x")]

        with pytest.raises(ConfigurationError, match="navigate"):
            await run(specs, fetcher)

    @pytest.mark.asyncio
    async def test_http_only_fetcher_is_enough_for_http_checks(self):
        report = await run([example_spec(expected_body_contains=(), max_response_time_ms=1000)], HttpOnlyFetcher())

        assert report.results[0].passed

    @pytest.mark.asyncio
    async def test_invalid_spec_aborts_before_any_fetch(self, fake_fetcher):
        fake_fetcher.responses[EXAMPLE_URL] = {"status": 200, "body": "Example"}
        specs = [example_spec(), CheckSpec(target=EXAMPLE_URL, expected_status={200})]

        with pytest.raises(ConfigurationError, match="check #1"):
            await run(specs, fake_fetcher)
        assert fake_fetcher.calls == []

    @pytest.mark.asyncio
    async def test_non_spec_item(self, fake_fetcher):
        with pytest.raises(ConfigurationError, match="not a CheckSpec"):
            await run([{"target": EXAMPLE_URL}], fake_fetcher)

    def test_invalid_runner_options(self):
        with pytest.raises(ConfigurationError):
            CheckRunner(max_parallel=-1)
        with pytest.raises(ConfigurationError):
            CheckRunner(default_timeout_seconds=0)
        with pytest.raises(ConfigurationError):
            CheckRunner(timeout_factor=0.5)


# ═══════════════════════════════════════════════════════
# CONCURRENCY & CANCELLATION
# ═══════════════════════════════════════════════════════

class TestConcurrency:

    @pytest.mark.asyncio
    async def test_order_preserved_when_completion_order_differs(self, fake_fetcher):
        specs = []
        for i in range(5):
            url = f"https://example.test/{i}"
            fake_fetcher.responses[url] = {"status": 200, "body": f"Example {i}"}
            # Первые проверки завершаются последними
            fake_fetcher.delays[url] = 0.05 * (5 - i)
            specs.append(example_spec(target=url, expected_body_contains=[f"Example {i}"]))

        report = await run(specs, fake_fetcher)

        assert [r.spec.target for r in report.results] == [s.target for s in specs]
        assert [r.index for r in report.results] == list(range(5))
        assert report.passed

    @pytest.mark.asyncio
    async def test_max_parallel_is_respected(self, fake_fetcher):
        specs = []
        for i in range(6):
            url = f"https://example.test/{i}"
            fake_fetcher.responses[url] = {"status": 200, "body": "Example"}
            fake_fetcher.delays[url] = 0.02
            specs.append(example_spec(target=url))

        report = await run(specs, fake_fetcher, max_parallel=2)

        assert report.total == 6
        assert fake_fetcher.max_active == 2

    @pytest.mark.asyncio
    async def test_cancel_before_start(self, fake_fetcher):
        fake_fetcher.responses[EXAMPLE_URL] = {"status": 200, "body": "Example"}
        cancel_event = asyncio.Event()
        cancel_event.set()

        report = await run([example_spec(), example_spec()], fake_fetcher, cancel_event=cancel_event)

        assert fake_fetcher.calls == []
        assert report.cancelled
        assert report.total == 2
        assert all(r.cancelled and r.failures == (CANCELLED_MESSAGE,) for r in report.results)

    @pytest.mark.asyncio
    async def test_cancel_mid_run_lets_in_flight_finish(self, fake_fetcher):
        cancel_event = asyncio.Event()

        def first(url):
            cancel_event.set()
            return {"status": 200, "body": "Example"}

        fake_fetcher.responses["https://example.test/0"] = first
        fake_fetcher.responses["https://example.test/1"] = {"status": 200, "body": "Example"}
        fake_fetcher.responses["https://example.test/2"] = {"status": 200, "body": "Example"}
        specs = [example_spec(target=f"https://example.test/{i}") for i in range(3)]

        report = await run(specs, fake_fetcher, max_parallel=1, cancel_event=cancel_event)

        assert report.results[0].passed
        assert not report.results[0].cancelled
        assert [r.cancelled for r in report.results[1:]] == [True, True]
        assert fake_fetcher.calls == [("fetch_http", "https://example.test/0")]
        assert report.cancelled

    @pytest.mark.asyncio
    async def test_runs_do_not_share_state(self):
        fetcher_a = FakeFetcher(responses={EXAMPLE_URL: {"status": 200, "body": "Example"}})
        fetcher_b = FakeFetcher(responses={EXAMPLE_URL: {"status": 500, "body": "Example"}})

        report_a, report_b = await asyncio.gather(
            run([example_spec()], fetcher_a),
            run([example_spec()], fetcher_b),
        )

        assert report_a.passed
        assert report_b.results[0].failures == ("status 500 not in {200}",)


@settings(max_examples=30, deadline=None)
@given(
    statuses=st.lists(st.sampled_from([200, 301, 404, 500]), max_size=12),
    max_parallel=st.integers(min_value=0, max_value=4),
)
def test_property_results_match_input(statuses, max_parallel):
    """Для любых N проверок: N результатов, порядок входа, passed iff status 200."""
    fetcher = FakeFetcher()
    specs = []
    for i, status in enumerate(statuses):
        url = f"https://example.test/{i}"
        fetcher.responses[url] = {"status": status, "body": "Example"}
        fetcher.delays[url] = 0.001 * ((i * 7) % 3)
        specs.append(example_spec(target=url))

    report = run_sync(specs, fetcher, max_parallel=max_parallel)

    assert report.total == len(specs)
    assert [r.spec for r in report.results] == specs
    assert [r.passed for r in report.results] == [s == 200 for s in statuses]
    assert report.passed == all(s == 200 for s in statuses)


def test_runner_from_config():
    config = AuditConfig(max_parallel=3, default_timeout_seconds=5.0, timeout_factor=1.5)
    runner = CheckRunner.from_config(config)

    assert runner.max_parallel == 3
    assert runner.timeout_for(example_spec()) == 5.0
    assert runner.timeout_for(example_spec(max_response_time_ms=1000)) == 1.5
