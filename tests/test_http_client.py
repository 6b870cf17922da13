"""
Unit Tests for the HTTP Client

Run with:
    python -m pytest tests/test_http_client.py -v
"""

import unittest
from unittest.mock import MagicMock

import requests

from pass_service.http_client import FetchError, HttpClient

URL = "https://celestrak.org/NORAD/elements/gp.php"


def make_session(response=None, error=None):
    session = MagicMock()
    session.headers = {}
    if error is not None:
        session.get.side_effect = error
    else:
        session.get.return_value = response
    return session


def make_response(text="", json_body=None, status_code=200):
    response = MagicMock()
    response.text = text
    response.status_code = status_code
    response.url = URL
    if isinstance(json_body, Exception):
        response.json.side_effect = json_body
    else:
        response.json.return_value = json_body
    return response


class TestHttpClient(unittest.TestCase):

    def test_get_text_passes_timeout_and_params(self):
        session = make_session(make_response(text="ISS (ZARYA)\n"))
        client = HttpClient(timeout=7.5, session=session, user_agent="tests/1.0")

        text = client.get_text(URL, params={"CATNR": "25544", "FORMAT": "TLE"})

        self.assertEqual(text, "ISS (ZARYA)\n")
        self.assertEqual(session.headers["User-Agent"], "tests/1.0")
        session.get.assert_called_once_with(
            URL,
            params={"CATNR": "25544", "FORMAT": "TLE"},
            headers={"Accept": "text/plain"},
            timeout=7.5,
        )

    def test_get_json(self):
        session = make_session(make_response(json_body=[{"uuid": "abc"}]))
        client = HttpClient(session=session)
        self.assertEqual(client.get_json(URL), [{"uuid": "abc"}])
        self.assertEqual(session.get.call_args.kwargs["headers"], {"Accept": "application/json"})

    def test_timeout(self):
        client = HttpClient(timeout=2, session=make_session(error=requests.Timeout("slow")))
        with self.assertRaises(FetchError) as ctx:
            client.get_text(URL)
        self.assertIn("timed out after 2s", str(ctx.exception))
        self.assertIsInstance(ctx.exception.__cause__, requests.Timeout)

    def test_http_status(self):
        response = make_response(status_code=503)
        response.raise_for_status.side_effect = requests.HTTPError("503", response=response)
        client = HttpClient(session=make_session(response))
        with self.assertRaises(FetchError) as ctx:
            client.get_text(URL)
        self.assertEqual(str(ctx.exception), f"HTTP 503 from {URL}")

    def test_connection_error(self):
        client = HttpClient(session=make_session(error=requests.ConnectionError("refused")))
        with self.assertRaises(FetchError) as ctx:
            client.get_json(URL)
        self.assertIn("refused", str(ctx.exception))

    def test_invalid_json(self):
        session = make_session(make_response(json_body=ValueError("Expecting value")))
        with self.assertRaises(FetchError) as ctx:
            HttpClient(session=session).get_json(URL)
        self.assertIn("Invalid JSON", str(ctx.exception))


if __name__ == "__main__":
    unittest.main()
