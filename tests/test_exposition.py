"""Tests for Prometheus text rendering (exposition.py)."""

import pytest
from prometheus_client.parser import text_string_to_metric_families

from docker_exporter.connectors.docker_connector import parse_info, parse_inspect, parse_stats
from docker_exporter.metrics.exposition import CONTENT_TYPE_LATEST, Renderer, to_families
from docker_exporter.services.collector import assemble
from tests.conftest import ENGINE_INFO, FULL_ID_WEB, SCRAPE_NOW, make_inspect, make_stats


@pytest.fixture
def samples(registry, build_info):
    snapshot = parse_inspect(make_inspect(FULL_ID_WEB, "web", health="healthy"))
    resources = {snapshot.id: parse_stats(FULL_ID_WEB, "web", make_stats())}
    return assemble(registry, build_info, [snapshot], resources, parse_info(ENGINE_INFO), SCRAPE_NOW, 0.0125)


class TestToFamilies:
    def test_one_family_per_name_in_first_seen_order(self, samples):
        families = to_families(samples)

        names = [f.name for f in families]
        assert len(names) == len(set(names))
        assert names[0] == "ndocker_build_info"
        assert names[-1] == "ndocker_scrape_duration_seconds"

    def test_containers_total_grouped(self, samples):
        families = {f.name: f for f in to_families(samples)}
        assert len(families["ndocker_containers_total"].samples) == 3


class TestRenderer:
    """Test rendered exposition output."""

    def test_content_type(self):
        assert Renderer().content_type == CONTENT_TYPE_LATEST
        assert CONTENT_TYPE_LATEST.startswith("text/plain")

    def test_help_and_type_lines(self, samples):
        text = Renderer().render(samples).decode("utf-8")

        assert "# HELP ndocker_container_state Container state" in text
        assert "# TYPE ndocker_container_state gauge" in text
        assert "# TYPE ndocker_container_network_rx_bytes counter" in text
        assert "ndocker_container_network_rx_bytes_total{" in text

    def test_round_trips_through_parser(self, samples):
        text = Renderer().render(samples).decode("utf-8")
        parsed = {f.name: f for f in text_string_to_metric_families(text)}

        state = parsed["ndocker_container_state"].samples[0]
        assert state.labels == {"id": "aaaaaaaaaaaa", "name": "web"}
        assert state.value == 1.0
        assert parsed["ndocker_scrape_duration_seconds"].samples[0].value == pytest.approx(0.0125)

        rx = {s.labels["interface"]: s.value for s in parsed["ndocker_container_network_rx_bytes"].samples}
        assert rx == {"eth0": 1000.0, "eth1": 10.0}

    def test_minimum_mode_has_no_runtime_metrics(self, samples):
        renderer = Renderer("minimum")
        text = renderer.render(samples).decode("utf-8")

        assert not renderer.include_runtime_metrics
        assert "python_info" not in text
        assert "python_gc_objects_collected" not in text

    def test_all_mode_adds_runtime_metrics(self, samples):
        renderer = Renderer("all")
        text = renderer.render(samples).decode("utf-8")

        assert renderer.include_runtime_metrics
        assert "python_info" in text
        assert "python_gc_objects_collected_total" in text
        assert "ndocker_build_info" in text

    def test_unknown_mode_falls_back_to_minimum(self):
        assert Renderer("verbose").output_mode == "minimum"

    def test_repeated_renders_do_not_accumulate(self, samples):
        """Each render starts from a fresh registry."""
        renderer = Renderer()
        first = renderer.render(samples)
        second = renderer.render(samples)
        assert first == second

    def test_empty_set(self):
        assert Renderer().render([]) == b""


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
