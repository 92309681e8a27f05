import base64
import json
from unittest.mock import MagicMock, patch

import requests
import responses
from django.test import TestCase

from catalog.clients.github_client import GITHUB_API_URL, HTTP_TIMEOUT, GitHubContentClient, backoff_delay
from catalog.exceptions import CommitFailed, ConcurrentModification, FetchFailed

REPO_URL = f"{GITHUB_API_URL}/repos/shop/vintage"
CONTENTS_URL = f"{REPO_URL}/contents/products.json"


def _make_client():
    return GitHubContentClient(token='test-token', owner='shop', repo='vintage', branch='main')


class TestBackoff(TestCase):
    def test_exponential_schedule(self):
        self.assertEqual([backoff_delay(n) for n in (1, 2, 3)], [1.0, 2.0, 4.0])

    def test_capped(self):
        self.assertEqual(backoff_delay(10), 10.0)


class TestGetFile(TestCase):
    def setUp(self):
        self.client = _make_client()
        self.session = self.client.make_session()

    @responses.activate
    def test_fetches_contents_on_branch(self):
        responses.add(responses.GET, CONTENTS_URL, json={"sha": "abc", "content": ""}, status=200)

        data = self.client.get_file(self.session)

        self.assertEqual(data['sha'], "abc")
        request = responses.calls[0].request
        self.assertIn("ref=main", request.url)
        self.assertEqual(request.headers['Authorization'], 'Bearer test-token')

    @responses.activate
    def test_retries_server_error(self):
        responses.add(responses.GET, CONTENTS_URL, json={"message": "boom"}, status=502)
        responses.add(responses.GET, CONTENTS_URL, json={"sha": "abc"}, status=200)

        with patch('catalog.clients.github_client.time.sleep') as sleep:
            data = self.client.get_file(self.session)

        self.assertEqual(data['sha'], "abc")
        self.assertEqual(len(responses.calls), 2)
        sleep.assert_called_once_with(1.0)

    @responses.activate
    def test_retries_network_error(self):
        responses.add(responses.GET, CONTENTS_URL, body=requests.exceptions.ConnectionError("reset"))
        responses.add(responses.GET, CONTENTS_URL, json={"sha": "abc"}, status=200)

        with patch('catalog.clients.github_client.time.sleep'):
            data = self.client.get_file(self.session)

        self.assertEqual(data['sha'], "abc")

    @responses.activate
    def test_exhausts_retries(self):
        for _ in range(3):
            responses.add(responses.GET, CONTENTS_URL, json={"message": "boom"}, status=500)

        with patch('catalog.clients.github_client.time.sleep') as sleep:
            with self.assertRaisesRegex(FetchFailed, "500"):
                self.client.get_file(self.session)

        self.assertEqual(len(responses.calls), 3)
        self.assertEqual([c.args[0] for c in sleep.call_args_list], [1.0, 2.0])

    @responses.activate
    def test_not_found_fails_without_retry(self):
        responses.add(responses.GET, CONTENTS_URL, json={"message": "Not Found"}, status=404)

        with patch('catalog.clients.github_client.time.sleep') as sleep:
            with self.assertRaisesRegex(FetchFailed, "Not Found"):
                self.client.get_file(self.session)

        self.assertEqual(len(responses.calls), 1)
        sleep.assert_not_called()

    @responses.activate
    def test_rate_limit_logged_and_retried(self):
        responses.add(
            responses.GET,
            CONTENTS_URL,
            json={"message": "API rate limit exceeded"},
            status=403,
            headers={"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": "1700000000"},
        )
        responses.add(responses.GET, CONTENTS_URL, json={"sha": "abc"}, status=200)

        with patch('catalog.clients.github_client.time.sleep'):
            with self.assertLogs('catalog.clients.github_client', level='WARNING') as logs:
                self.client.get_file(self.session)

        self.assertTrue(any("rate limit" in line for line in logs.output))

    @responses.activate
    def test_retry_after_capped(self):
        responses.add(responses.GET, CONTENTS_URL, status=429, headers={"Retry-After": "120"})
        responses.add(responses.GET, CONTENTS_URL, json={"sha": "abc"}, status=200)

        with patch('catalog.clients.github_client.time.sleep') as sleep:
            self.client.get_file(self.session)

        sleep.assert_called_once_with(10.0)


class TestGetBlob(TestCase):
    @responses.activate
    def test_fetches_blob_by_sha(self):
        responses.add(responses.GET, f"{REPO_URL}/git/blobs/abc", json={"sha": "abc", "content": "e30="})

        client = _make_client()
        data = client.get_blob(client.make_session(), "abc")

        self.assertEqual(data['content'], "e30=")


class TestPutFile(TestCase):
    def setUp(self):
        self.client = _make_client()
        self.session = self.client.make_session()

    @responses.activate
    def test_sends_content_message_sha_and_branch(self):
        responses.add(responses.PUT, CONTENTS_URL, json={"content": {"sha": "def"}}, status=200)

        data = self.client.put_file(self.session, b'{"products": []}\n', "Delete product: Coat", "abc")

        self.assertEqual(data['content']['sha'], "def")
        body = json.loads(responses.calls[0].request.body)
        self.assertEqual(body['sha'], "abc")
        self.assertEqual(body['branch'], "main")
        self.assertEqual(body['message'], "Delete product: Coat")
        self.assertEqual(base64.b64decode(body['content']), b'{"products": []}\n')

    @responses.activate
    def test_conflict_raises_concurrent_modification(self):
        responses.add(
            responses.PUT,
            CONTENTS_URL,
            json={"message": "products.json does not match abc"},
            status=409,
        )

        with self.assertRaises(ConcurrentModification):
            self.client.put_file(self.session, b'{}', "msg", "abc")

    @responses.activate
    def test_sha_validation_error_raises_concurrent_modification(self):
        responses.add(
            responses.PUT,
            CONTENTS_URL,
            json={"message": "Invalid request.\n\n\"sha\" wasn't supplied."},
            status=422,
        )

        with self.assertRaises(ConcurrentModification):
            self.client.put_file(self.session, b'{}', "msg", None)

    @responses.activate
    def test_other_failure_not_retried(self):
        responses.add(responses.PUT, CONTENTS_URL, json={"message": "Bad credentials"}, status=401)

        with self.assertRaisesRegex(CommitFailed, "Bad credentials"):
            self.client.put_file(self.session, b'{}', "msg", "abc")

        self.assertEqual(len(responses.calls), 1)


class TestGetRepository(TestCase):
    @responses.activate
    def test_fetches_repository(self):
        responses.add(responses.GET, REPO_URL, json={"full_name": "shop/vintage"})

        client = _make_client()
        data = client.get_repository(client.make_session())

        self.assertEqual(data['full_name'], "shop/vintage")


class TestTimeouts(TestCase):
    def setUp(self):
        self.client = _make_client()

    def test_reads_pass_timeout(self):
        session = MagicMock()
        session.get.return_value.ok = True

        self.client.get_file(session)

        self.assertEqual(session.get.call_args.kwargs['timeout'], HTTP_TIMEOUT)

    def test_put_passes_timeout(self):
        session = MagicMock()
        session.put.return_value.ok = True

        self.client.put_file(session, b'{}', "msg", "abc")

        self.assertEqual(session.put.call_args.kwargs['timeout'], HTTP_TIMEOUT)

    @responses.activate
    def test_read_timeout_retried_then_fails(self):
        for _ in range(3):
            responses.add(responses.GET, CONTENTS_URL, body=requests.exceptions.Timeout("read timed out"))

        with patch('catalog.clients.github_client.time.sleep') as sleep:
            with self.assertRaisesRegex(FetchFailed, "read timed out"):
                self.client.get_file(self.client.make_session())

        self.assertEqual(len(responses.calls), 3)
        self.assertEqual(sleep.call_count, 2)

    @responses.activate
    def test_put_timeout_fails_commit(self):
        responses.add(responses.PUT, CONTENTS_URL, body=requests.exceptions.Timeout("write timed out"))

        with self.assertRaisesRegex(CommitFailed, "write timed out"):
            self.client.put_file(self.client.make_session(), b'{}', "msg", "abc")

        self.assertEqual(len(responses.calls), 1)


class TestUnexpectedErrorBodies(TestCase):
    def setUp(self):
        self.client = _make_client()
        self.session = self.client.make_session()

    @responses.activate
    def test_put_with_list_body_fails_commit(self):
        responses.add(responses.PUT, CONTENTS_URL, json=["unexpected"], status=500)

        with self.assertRaisesRegex(CommitFailed, "Internal Server Error"):
            self.client.put_file(self.session, b'{}', "msg", "abc")

    @responses.activate
    def test_conflict_with_string_body(self):
        responses.add(responses.PUT, CONTENTS_URL, json="conflict", status=409)

        with self.assertRaises(ConcurrentModification):
            self.client.put_file(self.session, b'{}', "msg", "abc")

    @responses.activate
    def test_read_with_list_body_fails_fetch(self):
        for _ in range(3):
            responses.add(responses.GET, CONTENTS_URL, json=[1, 2], status=502)

        with patch('catalog.clients.github_client.time.sleep'):
            with self.assertRaisesRegex(FetchFailed, "502 Bad Gateway"):
                self.client.get_file(self.session)
