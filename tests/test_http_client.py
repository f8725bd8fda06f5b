import unittest

import requests

from concierge.errors import TransportError
from concierge.http_client import ResilientHttpClient, backoff_delay, is_retryable_status


class FakeClock:
    def __init__(self, start: float = 100.0):
        self.now = start
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class DummyResponse:
    def __init__(self, status_code=200):
        self.status_code = status_code
        self.closed = False

    def close(self):
        self.closed = True


class ScriptedSession:
    """Replays a list of responses / exceptions, one per request."""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def request(self, method, url, timeout=None, **kwargs):
        self.calls.append({"method": method, "url": url, "timeout": timeout, **kwargs})
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _client(outcomes, timeout_seconds=8.0, max_attempts=3):
    clock = FakeClock()
    session = ScriptedSession(outcomes)
    client = ResilientHttpClient(
        timeout_seconds=timeout_seconds,
        max_attempts=max_attempts,
        session=session,
        sleep=clock.sleep,
        clock=clock,
    )
    return client, session, clock


class TestRetryPolicy(unittest.TestCase):
    def test_retryable_statuses(self):
        self.assertTrue(is_retryable_status(429))
        self.assertTrue(is_retryable_status(500))
        self.assertTrue(is_retryable_status(503))
        self.assertFalse(is_retryable_status(404))
        self.assertFalse(is_retryable_status(200))

    def test_backoff_doubles(self):
        self.assertEqual(backoff_delay(1), 2.0)
        self.assertEqual(backoff_delay(2), 4.0)

    def test_rejects_zero_attempts(self):
        with self.assertRaises(ValueError):
            ResilientHttpClient(max_attempts=0, session=ScriptedSession([]))


class TestResilientHttpClient(unittest.TestCase):
    def test_success_first_try(self):
        ok = DummyResponse(200)
        client, session, clock = _client([ok])

        resp = client.get("https://example.com/a", params={"x": 1})

        self.assertIs(resp, ok)
        self.assertEqual(len(session.calls), 1)
        self.assertEqual(session.calls[0]["method"], "GET")
        self.assertEqual(session.calls[0]["params"], {"x": 1})
        self.assertEqual(session.calls[0]["timeout"], 8.0)
        self.assertEqual(clock.sleeps, [])

    def test_non_retryable_status_returned_immediately(self):
        missing = DummyResponse(404)
        client, session, clock = _client([missing])

        resp = client.get("https://example.com/a")

        self.assertEqual(resp.status_code, 404)
        self.assertEqual(len(session.calls), 1)

    def test_retries_5xx_then_succeeds_with_backoff(self):
        first = DummyResponse(503)
        ok = DummyResponse(200)
        client, session, clock = _client([first, ok], timeout_seconds=30.0)

        resp = client.post("https://example.com/a", json={"k": "v"})

        self.assertIs(resp, ok)
        self.assertEqual(clock.sleeps, [2.0])
        self.assertTrue(first.closed)
        self.assertEqual(session.calls[1]["json"], {"k": "v"})

    def test_transport_errors_retry_then_raise(self):
        client, session, clock = _client(
            [requests.ConnectionError("boom")] * 3, timeout_seconds=30.0
        )

        with self.assertRaises(TransportError) as ctx:
            client.get("https://example.com/a?apikey=secret")

        self.assertEqual(len(session.calls), 3)
        self.assertEqual(clock.sleeps, [2.0, 4.0])
        self.assertNotIn("secret", str(ctx.exception))
        self.assertIn("ConnectionError", str(ctx.exception))

    def test_exhausted_retries_return_last_response(self):
        responses = [DummyResponse(500), DummyResponse(502), DummyResponse(429)]
        client, session, clock = _client(responses, timeout_seconds=30.0)

        resp = client.get("https://example.com/a")

        self.assertEqual(resp.status_code, 429)
        self.assertEqual(len(session.calls), 3)

    def test_backoff_past_deadline_stops_early(self):
        # 2s backoff fits in an 8s budget, the following 4s does not after time passes
        client, session, clock = _client([DummyResponse(500), DummyResponse(500), DummyResponse(200)])

        def slow_request(method, url, timeout=None, **kwargs):
            session.calls.append({"timeout": timeout})
            clock.now += 2.5
            return DummyResponse(500)

        session.request = slow_request
        resp = client.get("https://example.com/a")

        self.assertEqual(resp.status_code, 500)
        self.assertEqual(len(session.calls), 2)
        self.assertEqual(clock.sleeps, [2.0])
        # the second attempt only gets what is left of the deadline
        self.assertAlmostEqual(session.calls[1]["timeout"], 8.0 - 2.5 - 2.0)

    def test_read_timeout_gives_connect_read_tuple(self):
        client, session, clock = _client([DummyResponse(200)])

        client.post("https://example.com/stream", stream=True, read_timeout=60.0)

        self.assertEqual(session.calls[0]["timeout"], (8.0, 60.0))
        self.assertTrue(session.calls[0]["stream"])


if __name__ == "__main__":
    unittest.main()
