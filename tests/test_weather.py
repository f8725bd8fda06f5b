import unittest

from concierge.cache import KeyedCache
from concierge.config import Settings
from concierge.errors import ConfigurationError, InvalidArgumentError, NotFoundError, UpstreamError
from concierge.geocoder import GeocodeResult
from concierge.weather import WeatherService, celsius_to_fahrenheit, round_one_decimal


class DummyResponse:
    def __init__(self, status_code=200, payload=None, reason="OK"):
        self.status_code = status_code
        self.ok = status_code < 400
        self.reason = reason
        self._payload = payload

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class FakeHttp:
    def __init__(self, response):
        self.response = response
        self.calls = []

    def get(self, url, **kwargs):
        self.calls.append((url, kwargs))
        return self.response


class FakeGeocoder:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.queries = []

    def geocode(self, query):
        self.queries.append(query)
        if self.error:
            raise self.error
        return self.result


def _reading_payload(temp_c, code=1000):
    return {"data": {"values": {"temperature": temp_c, "weatherCode": code}}}


SAN_CLEMENTE = GeocodeResult("San Clemente, Orange County, California", 33.427, -117.612)


class TestWeatherService(unittest.TestCase):
    def _service(self, response, geocoder=None, **overrides):
        params = {"tomorrow_api_key": "tmrw", "tomorrow_base_url": "https://wx.test/v4/weather"}
        params.update(overrides)
        http = FakeHttp(response)
        geocoder = geocoder or FakeGeocoder(SAN_CLEMENTE)
        return WeatherService(http, KeyedCache(), geocoder, Settings(**params)), http, geocoder

    def test_celsius_to_fahrenheit(self):
        self.assertEqual(celsius_to_fahrenheit(0), 32)
        self.assertEqual(celsius_to_fahrenheit(100), 212)

    def test_query_lookup_rounds_to_one_decimal(self):
        service, http, geocoder = self._service(DummyResponse(payload=_reading_payload(22.04)))

        reading = service.get_weather(q="San Clemente, CA")

        self.assertEqual(reading.tempC, 22.0)
        self.assertEqual(reading.tempF, 71.7)
        self.assertEqual(reading.location, SAN_CLEMENTE.location)
        self.assertEqual(reading.conditionCode, "1000")
        self.assertEqual(reading.provider, "tomorrow.io")
        self.assertEqual(geocoder.queries, ["San Clemente, CA"])

        url, kwargs = http.calls[0]
        self.assertEqual(url, "https://wx.test/v4/weather/realtime")
        self.assertEqual(kwargs["params"]["location"], "33.427,-117.612")
        self.assertEqual(kwargs["params"]["apikey"], "tmrw")

    def test_halves_round_up(self):
        service, _, _ = self._service(DummyResponse(payload=_reading_payload(22.25)))

        reading = service.get_weather(lat=1.0, lon=2.0)

        self.assertEqual(reading.tempC, 22.3)
        self.assertEqual(round_one_decimal(0.25), 0.3)
        self.assertEqual(round_one_decimal(-0.25), -0.2)

    def test_coordinates_skip_geocoding(self):
        geocoder = FakeGeocoder(error=AssertionError("should not geocode"))
        service, http, _ = self._service(DummyResponse(payload=_reading_payload(10)), geocoder=geocoder)

        reading = service.get_weather(lat=37.77, lon=-122.42)

        self.assertEqual(reading.location, "37.77,-122.42")
        self.assertEqual(reading.tempF, 50.0)

    def test_cache_is_shared_by_coordinates(self):
        geocoder = FakeGeocoder(GeocodeResult("Somewhere", 37.77, -122.42))
        service, http, _ = self._service(DummyResponse(payload=_reading_payload(10)), geocoder=geocoder)

        service.get_weather(lat=37.77, lon=-122.42)
        service.get_weather(q="Somewhere")

        self.assertEqual(len(http.calls), 1)

    def test_requires_coordinates_or_query(self):
        service, _, _ = self._service(DummyResponse(payload=_reading_payload(10)))
        with self.assertRaises(InvalidArgumentError):
            service.get_weather()
        with self.assertRaises(InvalidArgumentError):
            service.get_weather(lat=1.0)

    def test_geocode_miss_propagates(self):
        geocoder = FakeGeocoder(error=NotFoundError("No results found for query: Atlantis"))
        service, http, _ = self._service(DummyResponse(payload=_reading_payload(10)), geocoder=geocoder)

        with self.assertRaises(NotFoundError):
            service.get_weather(q="Atlantis")
        self.assertEqual(http.calls, [])

    def test_missing_api_key_is_configuration_error(self):
        service, http, _ = self._service(DummyResponse(payload=_reading_payload(10)), tomorrow_api_key=None)
        with self.assertRaises(ConfigurationError):
            service.get_weather(lat=1.0, lon=2.0)
        self.assertEqual(http.calls, [])

    def test_provider_error_status(self):
        service, _, _ = self._service(DummyResponse(status_code=401, reason="Unauthorized"))
        with self.assertRaises(UpstreamError) as ctx:
            service.get_weather(lat=1.0, lon=2.0)
        self.assertEqual(ctx.exception.status_code, 401)

    def test_missing_temperature_is_upstream_error(self):
        service, _, _ = self._service(DummyResponse(payload={"data": {"values": {}}}))
        with self.assertRaises(UpstreamError):
            service.get_weather(lat=1.0, lon=2.0)


if __name__ == "__main__":
    unittest.main()
