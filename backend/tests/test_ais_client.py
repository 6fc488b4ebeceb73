"""Tests for the MyShipTracking client: response parsing and error mapping.

HTTP is faked with httpx.MockTransport so the real request path (headers,
params, status handling, JSON decoding) is exercised without the network.
"""
from datetime import datetime, timezone

import httpx
import pytest

from seatime.errors import NoDataForVessel, ProviderTimeout, ProviderUnavailable, RateLimited
from seatime.modules.ais_client import AISClient, parse_vessel_payload

NOW = datetime(2026, 3, 14, 12, 0, 0)


def _client(handler, **kwargs):
    kwargs.setdefault("api_key", "test-key")
    kwargs.setdefault("base_url", "https://ais.example.test/api/v2")
    return AISClient(transport=httpx.MockTransport(handler), clock=lambda: NOW, **kwargs)


def _vessel_body(**fields):
    data = {
        "mmsi": 235000001,
        "vessel_name": "SEA BREEZE",
        "lat": 50.8123,
        "lng": -1.2987,
        "speed": 11.4,
        "course": 182.0,
        "nav_status": "Under way using engine",
        "received": "2026-03-14T11:55:00Z",
    }
    data.update(fields)
    return {"status": "success", "data": data}


class TestFetchSample:

    def test_parses_successful_response(self):
        seen = {}

        def handler(request):
            seen["request"] = request
            return httpx.Response(200, json=_vessel_body())

        sample = _client(handler).fetch_sample("235000001")

        assert sample.speed_knots == pytest.approx(11.4)
        assert sample.latitude == pytest.approx(50.8123)
        assert sample.longitude == pytest.approx(-1.2987)
        assert sample.timestamp == datetime(2026, 3, 14, 11, 55, 0)
        assert sample.raw_status == "Under way using engine"
        assert sample.is_stale is False
        assert sample.source == "myshiptracking"

        request = seen["request"]
        assert request.url.path == "/api/v2/vessel"
        assert request.url.params["mmsi"] == "235000001"
        assert request.headers["Authorization"] == "Bearer test-key"

    def test_missing_api_key_is_provider_unavailable(self):
        client = _client(lambda r: httpx.Response(200, json=_vessel_body()), api_key="")
        with pytest.raises(ProviderUnavailable, match="API_KEY"):
            client.fetch_sample("235000001")

    def test_429_maps_to_rate_limited_with_retry_after(self):
        client = _client(lambda r: httpx.Response(429, headers={"Retry-After": "30"}))
        with pytest.raises(RateLimited) as exc_info:
            client.fetch_sample("235000001")
        assert exc_info.value.retry_after == 30.0
        assert exc_info.value.transient is True

    def test_404_maps_to_no_data(self):
        client = _client(lambda r: httpx.Response(404, json={"status": "error"}))
        with pytest.raises(NoDataForVessel):
            client.fetch_sample("235000001")

    @pytest.mark.parametrize("status_code", [401, 403, 500, 502, 503])
    def test_http_errors_map_to_unavailable(self, status_code):
        client = _client(lambda r: httpx.Response(status_code, text="nope"))
        with pytest.raises(ProviderUnavailable):
            client.fetch_sample("235000001")

    def test_timeout_maps_to_provider_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("read timed out", request=request)

        with pytest.raises(ProviderTimeout):
            _client(handler).fetch_sample("235000001")

    def test_connection_error_maps_to_unavailable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ProviderUnavailable):
            _client(handler).fetch_sample("235000001")

    def test_non_json_body_is_unavailable(self):
        client = _client(lambda r: httpx.Response(200, text="<html>maintenance</html>"))
        with pytest.raises(ProviderUnavailable, match="non-JSON"):
            client.fetch_sample("235000001")

    def test_error_envelope_for_unknown_vessel_is_no_data(self):
        body = {"status": "error", "message": "Vessel not found"}
        with pytest.raises(NoDataForVessel):
            _client(lambda r: httpx.Response(200, json=body)).fetch_sample("235000001")


class TestSampleCache:

    def test_second_call_is_served_from_cache(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json=_vessel_body())

        client = _client(handler, cache_ttl_seconds=300)
        first = client.fetch_sample("235000001")
        second = client.fetch_sample("235000001")

        assert len(calls) == 1
        assert second is first

    def test_force_refresh_bypasses_cache(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json=_vessel_body())

        client = _client(handler, cache_ttl_seconds=300)
        client.fetch_sample("235000001")
        client.fetch_sample("235000001", force_refresh=True)

        assert len(calls) == 2
        assert calls[1].headers["Cache-Control"] == "no-cache"
        assert "Cache-Control" not in calls[0].headers

    def test_zero_ttl_disables_cache(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json=_vessel_body())

        client = _client(handler, cache_ttl_seconds=0)
        client.fetch_sample("235000001")
        client.fetch_sample("235000001")
        assert len(calls) == 2

    def test_failures_are_not_cached(self):
        responses = [httpx.Response(503), httpx.Response(200, json=_vessel_body())]
        client = _client(lambda r: responses.pop(0), cache_ttl_seconds=300)

        with pytest.raises(ProviderUnavailable):
            client.fetch_sample("235000001")
        assert client.fetch_sample("235000001").speed_knots == pytest.approx(11.4)

    def test_clear_cache(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json=_vessel_body())

        client = _client(handler, cache_ttl_seconds=300)
        client.fetch_sample("235000001")
        client.clear_cache()
        client.fetch_sample("235000001")
        assert len(calls) == 2


class TestParseVesselPayload:

    def test_missing_speed_stays_unknown_not_zero(self):
        body = _vessel_body()
        del body["data"]["speed"]
        sample = parse_vessel_payload(body, now=NOW, stale_after_hours=6)
        assert sample.speed_knots is None
        assert sample.has_position

    def test_sog_not_available_sentinel_is_unknown(self):
        sample = parse_vessel_payload(_vessel_body(speed=102.3), now=NOW, stale_after_hours=6)
        assert sample.speed_knots is None

    def test_null_island_position_is_dropped(self):
        sample = parse_vessel_payload(_vessel_body(lat=0, lng=0), now=NOW, stale_after_hours=6)
        assert sample.latitude is None
        assert sample.longitude is None
        assert sample.speed_knots == pytest.approx(11.4)

    def test_out_of_range_position_is_dropped(self):
        sample = parse_vessel_payload(_vessel_body(lat=95.0), now=NOW, stale_after_hours=6)
        assert sample.has_position is False

    def test_no_position_and_no_speed_is_no_data(self):
        body = _vessel_body(lat=None, lng=None, speed=None)
        with pytest.raises(NoDataForVessel):
            parse_vessel_payload(body, now=NOW, stale_after_hours=6)

    def test_empty_data_is_no_data(self):
        with pytest.raises(NoDataForVessel):
            parse_vessel_payload({"status": "success", "data": []}, now=NOW, stale_after_hours=6)

    def test_list_payload_uses_first_record(self):
        body = {"status": "success", "data": [_vessel_body()["data"]]}
        sample = parse_vessel_payload(body, now=NOW, stale_after_hours=6)
        assert sample.latitude == pytest.approx(50.8123)

    def test_old_position_is_flagged_stale(self):
        body = _vessel_body(received="2026-03-14T02:00:00Z")
        sample = parse_vessel_payload(body, now=NOW, stale_after_hours=6)
        assert sample.is_stale is True

    def test_missing_timestamp_falls_back_to_poll_time(self):
        body = _vessel_body()
        del body["data"]["received"]
        sample = parse_vessel_payload(body, now=NOW, stale_after_hours=6)
        assert sample.timestamp == NOW
        assert sample.is_stale is False

    def test_epoch_timestamp(self):
        epoch = int(datetime(2026, 3, 14, 11, 0, 0, tzinfo=timezone.utc).timestamp())
        sample = parse_vessel_payload(_vessel_body(received=epoch), now=NOW, stale_after_hours=6)
        assert sample.timestamp == datetime(2026, 3, 14, 11, 0, 0)

    def test_string_numbers_are_parsed(self):
        body = _vessel_body(lat="50.5", lng="-1.5", speed="7.2")
        sample = parse_vessel_payload(body, now=NOW, stale_after_hours=6)
        assert sample.speed_knots == pytest.approx(7.2)
        assert sample.latitude == pytest.approx(50.5)
