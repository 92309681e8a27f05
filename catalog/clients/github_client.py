import base64
import logging
import time
from datetime import datetime, timezone

import requests
from django.conf import settings

from catalog.exceptions import CommitFailed, ConcurrentModification, FetchFailed

from .base import BaseContentClient

logger = logging.getLogger(__name__)

GITHUB_API_URL = getattr(settings, 'GITHUB_API_URL', 'https://api.github.com')

MAX_ATTEMPTS = getattr(settings, 'CATALOG_FETCH_MAX_ATTEMPTS', 3)
RETRY_BASE_DELAY = getattr(settings, 'CATALOG_RETRY_BASE_DELAY', 1.0)
RETRY_MAX_DELAY = getattr(settings, 'CATALOG_RETRY_MAX_DELAY', 10.0)
HTTP_TIMEOUT = getattr(settings, 'CATALOG_HTTP_TIMEOUT', 30.0)

# Auth and missing-repo failures will not recover on retry.
PERMANENT_STATUSES = (401, 404)


def backoff_delay(attempt):
    return min(RETRY_BASE_DELAY * (2 ** (attempt - 1)), RETRY_MAX_DELAY)


def _error_message(response):
    try:
        body = response.json()
    except ValueError:
        return response.reason
    if isinstance(body, dict) and body.get('message'):
        return str(body['message'])
    return response.reason


class GitHubContentClient(BaseContentClient):
    def __init__(self, token=None, owner=None, repo=None, branch=None, path=None, api_url=None):
        self.token = settings.GITHUB_TOKEN if token is None else token
        self.owner = owner or settings.GITHUB_OWNER
        self.repo = repo or settings.GITHUB_REPO
        self.branch = branch or settings.GITHUB_BRANCH
        self.path = path or settings.CATALOG_DOCUMENT_PATH
        self.api_url = (api_url or GITHUB_API_URL).rstrip('/')

    @property
    def repo_url(self):
        return f"{self.api_url}/repos/{self.owner}/{self.repo}"

    @property
    def contents_url(self):
        return f"{self.repo_url}/contents/{self.path}"

    def make_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update({
            'Authorization': f'Bearer {self.token}',
            'Accept': 'application/vnd.github.v3+json',
            'User-Agent': 'vintage-catalog-updater',
        })
        return session

    def get_file(self, session):
        response = self._get_with_retry(session, self.contents_url, params={'ref': self.branch})
        return response.json()

    def get_blob(self, session, sha):
        response = self._get_with_retry(session, f"{self.repo_url}/git/blobs/{sha}")
        return response.json()

    def get_repository(self, session):
        response = self._get_with_retry(session, self.repo_url)
        return response.json()

    def put_file(self, session, content, message, sha):
        payload = {
            'message': message,
            'content': base64.b64encode(content).decode('ascii'),
            'sha': sha,
            'branch': self.branch,
        }
        logger.info("Committing %s with sha %s: %s", self.path, sha, message)

        try:
            response = session.put(self.contents_url, json=payload, timeout=HTTP_TIMEOUT)
        except requests.exceptions.RequestException as exc:
            raise CommitFailed(f"Failed to commit: {exc}") from exc

        if response.ok:
            return response.json()

        error = _error_message(response)
        if response.status_code == 409 or (response.status_code == 422 and 'sha' in error.lower()):
            logger.error("SHA mismatch committing %s with sha %s: %s", self.path, sha, error)
            raise ConcurrentModification(
                "Conflict: products.json was modified by someone else. Please try again."
            )

        logger.error("Commit of %s failed with status %d: %s", self.path, response.status_code, error)
        raise CommitFailed(f"Failed to commit: {error}")

    def _get_with_retry(self, session, url, params=None):
        last_error = None

        for attempt in range(1, MAX_ATTEMPTS + 1):
            logger.debug("GET %s, attempt %d/%d", url, attempt, MAX_ATTEMPTS)
            try:
                response = session.get(url, params=params, timeout=HTTP_TIMEOUT)
            except requests.exceptions.RequestException as exc:
                last_error = str(exc)
                response = None
            else:
                if response.ok:
                    return response
                last_error = f"{response.status_code} {_error_message(response)}"
                if response.status_code in PERMANENT_STATUSES:
                    break

            if attempt == MAX_ATTEMPTS:
                break

            delay = backoff_delay(attempt)
            if response is not None and response.status_code in (403, 429):
                delay = self._rate_limit_delay(response, delay)
            logger.warning(
                "GET %s failed (%s), attempt %d/%d, waiting %.1fs",
                url, last_error, attempt, MAX_ATTEMPTS, delay,
            )
            time.sleep(delay)

        raise FetchFailed(f"Failed to fetch {url}: {last_error}")

    def _rate_limit_delay(self, response, delay):
        reset = response.headers.get('X-RateLimit-Reset')
        if reset and reset.isdigit():
            reset_at = datetime.fromtimestamp(int(reset), tz=timezone.utc)
            logger.warning("GitHub rate limit hit, resets at %s", reset_at.isoformat())

        retry_after = response.headers.get('Retry-After')
        if retry_after and retry_after.replace('.', '', 1).isdigit():
            delay = max(float(retry_after), delay)
        return min(delay, RETRY_MAX_DELAY)
