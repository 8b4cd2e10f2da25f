import datetime as dt
import unittest

import requests
from fastapi import WebSocketDisconnect
from fastapi.testclient import TestClient

from stylecast import store_manager
from stylecast.app_types import CurrentWeather, ForecastSample
from stylecast.data_sources import CallableWeatherProvider, WeatherProviderError
from stylecast.document_store import DocumentStoreError, InMemoryDocumentStore
from stylecast.main import app as fastapi_app

UTC = dt.timezone.utc


def _weather(city="Seoul", temperature=3.0):
    return CurrentWeather(
        city=city,
        timestamp=dt.datetime(2024, 1, 15, 3, 0, tzinfo=UTC),
        temperature=temperature,
        feels_like=1.0,
        temperature_min=0.0,
        temperature_max=5.0,
        humidity=40.0,
        condition_code="13d",
        description="light snow",
    )


def _samples():
    start = dt.datetime(2024, 1, 15, 0, tzinfo=UTC)
    return [
        ForecastSample(
            timestamp=start + dt.timedelta(hours=3 * i),
            temperature=float(i),
            temperature_min=float(i) - 1,
            temperature_max=float(i) + 1,
            condition_code="01d",
            precipitation_probability=0.1,
        )
        for i in range(16)
    ]


class RecordingProvider:
    def __init__(self):
        self.calls = []

    def build(self):
        def current(lat, lon):
            self.calls.append(("current", lat, lon))
            return _weather(temperature=25.0)

        def current_by_city(city):
            self.calls.append(("city", city))
            return _weather(city=city)

        def forecast(lat, lon):
            self.calls.append(("forecast", lat, lon))
            return _samples()

        return CallableWeatherProvider(current=current, current_by_city=current_by_city, forecast=forecast)


def _item_body(name="Wool Cardigan"):
    return {"name": name, "image_reference": "cardigan_1", "price": "49,000"}


class TestApi(unittest.TestCase):
    def setUp(self):
        import stylecast.api as api_mod
        from stylecast.config import settings

        self.api_mod = api_mod
        self.settings = settings
        self._orig_provider = api_mod.WEATHER_PROVIDER
        self._orig_api_key = settings.api_key
        self._orig_timezone = settings.forecast_timezone
        self._orig_store = store_manager._store

        self.recorder = RecordingProvider()
        api_mod.WEATHER_PROVIDER = self.recorder.build()
        settings.forecast_timezone = "UTC"
        self.store = store_manager.use_in_memory_store_for_tests()
        self.client = TestClient(fastapi_app)

    def tearDown(self):
        self.api_mod.WEATHER_PROVIDER = self._orig_provider
        self.settings.api_key = self._orig_api_key
        self.settings.forecast_timezone = self._orig_timezone
        store_manager._store = self._orig_store

    # Weather

    def test_current_weather_defaults_location(self):
        resp = self.client.get("/v1/weather/current")
        self.assertEqual(resp.status_code, 200)
        data = resp.json()
        self.assertTrue(data["used_default_location"])
        self.assertEqual(
            self.recorder.calls,
            [("current", self.settings.default_latitude, self.settings.default_longitude)],
        )

    def test_current_weather_by_city(self):
        resp = self.client.get("/v1/weather/current", params={"city": "Busan"})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["city"], "Busan")
        self.assertFalse(resp.json()["used_default_location"])

    def test_current_weather_requires_both_coordinates(self):
        resp = self.client.get("/v1/weather/current", params={"latitude": 37.5})
        self.assertEqual(resp.status_code, 400)

    def test_provider_errors_map_to_502(self):
        def fail(*_args):
            raise WeatherProviderError("no key")

        def http_fail(*_args):
            raise requests.HTTPError("401")

        self.api_mod.WEATHER_PROVIDER = CallableWeatherProvider(current=fail, current_by_city=fail, forecast=http_fail)
        self.assertEqual(self.client.get("/v1/weather/current").status_code, 502)
        self.assertEqual(self.client.get("/v1/weather/forecast").status_code, 502)

    def test_forecast_views(self):
        resp = self.client.get("/v1/weather/forecast", params={"latitude": 35.1, "longitude": 129.0})
        self.assertEqual(resp.status_code, 200)
        data = resp.json()
        self.assertEqual(len(data["hourly"]), self.settings.hourly_window)
        self.assertEqual(len(data["daily"]), 2)
        self.assertEqual(data["daily"][0]["label"], "1.15 (Mon)")
        self.assertEqual(data["daily"][0]["precipitation_probability"], 10)
        self.assertEqual(self.recorder.calls, [("forecast", 35.1, 129.0)])

    # Recommendations

    def test_recommendations(self):
        resp = self.client.get("/v1/recommendations", params={"temperature": 3, "gender": "men", "style": "street"})
        self.assertEqual(resp.status_code, 200)
        data = resp.json()
        self.assertEqual(data["category"], "cold")
        self.assertEqual([r["asset_key"] for r in data["recommendations"]], [f"men_cold_{i}" for i in range(1, 6)])

    def test_recommendations_reject_unknown_style(self):
        resp = self.client.get("/v1/recommendations", params={"temperature": 3, "style": "punk"})
        self.assertEqual(resp.status_code, 422)

    def test_current_recommendations(self):
        resp = self.client.get("/v1/recommendations/current", params={"gender": "women", "style": "minimal"})
        self.assertEqual(resp.status_code, 200)
        data = resp.json()
        self.assertEqual(data["weather"]["temperature"], 25.0)
        self.assertEqual(data["recommendations"]["category"], "mild")
        self.assertEqual(data["recommendations"]["recommendations"][0]["asset_key"], "women_mild_minimal_1")

    def test_requires_api_key_when_set(self):
        self.settings.api_key = "sekret"
        missing = self.client.get("/v1/recommendations", params={"temperature": 10})
        self.assertEqual(missing.status_code, 401)
        wrong = self.client.get("/v1/recommendations", params={"temperature": 10}, headers={"X-API-Key": "nope"})
        self.assertEqual(wrong.status_code, 401)
        ok = self.client.get("/v1/recommendations", params={"temperature": 10}, headers={"X-API-Key": "sekret"})
        self.assertEqual(ok.status_code, 200)

    # Likes

    def test_like_lifecycle(self):
        put = self.client.put("/v1/users/u1/likes/Wool Cardigan", json=_item_body())
        self.assertEqual(put.status_code, 200)
        self.assertEqual(put.json()["id"], "Wool Cardigan")

        status = self.client.get("/v1/users/u1/likes/Wool Cardigan/status")
        self.assertEqual(status.json(), {"liked": True})

        listed = self.client.get("/v1/users/u1/likes")
        self.assertEqual([i["id"] for i in listed.json()["items"]], ["Wool Cardigan"])

        got = self.client.get("/v1/users/u1/likes/Wool Cardigan")
        self.assertEqual(got.json()["image_reference"], "cardigan_1")

        deleted = self.client.delete("/v1/users/u1/likes/Wool Cardigan")
        self.assertEqual(deleted.status_code, 204)
        self.assertEqual(self.client.get("/v1/users/u1/likes/Wool Cardigan/status").json(), {"liked": False})

    def test_unlike_absent_item_is_204(self):
        self.assertEqual(self.client.delete("/v1/users/u1/likes/never").status_code, 204)

    def test_missing_like_is_404(self):
        self.assertEqual(self.client.get("/v1/users/u1/likes/never").status_code, 404)

    def test_like_rejects_mismatched_id(self):
        resp = self.client.put("/v1/users/u1/likes/Other", json=_item_body())
        self.assertEqual(resp.status_code, 400)

    def test_store_failure_is_503(self):
        class BrokenStore(InMemoryDocumentStore):
            def get_document(self, user_id, doc_id):
                raise DocumentStoreError("backend down")

            def list_documents(self, user_id, *, order_by, descending=True):
                raise DocumentStoreError("backend down")

        store_manager._store = BrokenStore()
        self.assertEqual(self.client.get("/v1/users/u1/likes/x/status").status_code, 503)
        self.assertEqual(self.client.get("/v1/users/u1/likes").status_code, 503)

    def test_like_stream_pushes_snapshots(self):
        with self.client.websocket_connect("/v1/users/u1/likes/stream") as ws:
            first = ws.receive_json()
            self.assertEqual(first, {"type": "snapshot", "items": []})

            self.client.put("/v1/users/u1/likes/Wool Cardigan", json=_item_body())
            second = ws.receive_json()
            self.assertEqual(second["type"], "snapshot")
            self.assertEqual([i["id"] for i in second["items"]], ["Wool Cardigan"])

    def test_like_stream_reports_failed_start_and_closes(self):
        class UnsubscribableStore(InMemoryDocumentStore):
            def subscribe(self, user_id, on_snapshot, on_error, *, order_by, descending=True):
                raise DocumentStoreError("listener denied")

        store_manager._store = UnsubscribableStore()
        with self.client.websocket_connect("/v1/users/u1/likes/stream") as ws:
            frame = ws.receive_json()
            self.assertEqual(frame["type"], "error")
            self.assertIn("listener denied", frame["detail"])
            with self.assertRaises(WebSocketDisconnect) as ctx:
                ws.receive_json()
            self.assertEqual(ctx.exception.code, 1011)

    def test_like_stream_reports_lost_subscription_and_closes(self):
        class RevocableStore(InMemoryDocumentStore):
            def __init__(self):
                super().__init__()
                self.error_callbacks = []

            def subscribe(self, user_id, on_snapshot, on_error, *, order_by, descending=True):
                self.error_callbacks.append(on_error)
                return super().subscribe(user_id, on_snapshot, on_error, order_by=order_by, descending=descending)

        store = RevocableStore()
        store_manager._store = store
        with self.client.websocket_connect("/v1/users/u1/likes/stream") as ws:
            self.assertEqual(ws.receive_json(), {"type": "snapshot", "items": []})
            store.error_callbacks[-1](DocumentStoreError("listener revoked"))
            frame = ws.receive_json()
            self.assertEqual(frame["type"], "error")
            self.assertIn("listener revoked", frame["detail"])
            with self.assertRaises(WebSocketDisconnect) as ctx:
                ws.receive_json()
            self.assertEqual(ctx.exception.code, 1011)


if __name__ == "__main__":
    unittest.main()
