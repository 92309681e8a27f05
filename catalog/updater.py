import enum
import logging
import threading

from django.conf import settings
from django.db import DatabaseError
from django.utils.module_loading import import_string

from catalog.documents import check_document_size, decode_document, encode_document
from catalog.exceptions import ConcurrentModification, NotConfigured
from catalog.models import CatalogCommit
from catalog.mutations import apply_mutation

logger = logging.getLogger(__name__)

INLINE_CONTENT_LIMIT = getattr(settings, 'CATALOG_INLINE_CONTENT_LIMIT', 1_000_000)
CONFLICT_RETRIES = getattr(settings, 'CATALOG_CONFLICT_RETRIES', 1)


class PipelineState(enum.Enum):
    START = 'start'
    FETCHING = 'fetching'
    FETCHING_BLOB = 'fetching_blob'
    DECODING = 'decoding'
    MUTATING = 'mutating'
    SIZE_CHECK = 'size_check'
    COMMITTING = 'committing'
    DONE = 'done'
    FAILED = 'failed'


def fetch_document(client, session, on_state=None):
    """Returns (document, sha) for the current revision of the catalog."""
    def enter(state):
        if on_state is not None:
            on_state(state)

    enter(PipelineState.FETCHING)
    file_data = client.get_file(session)
    sha = file_data.get('sha')
    content = file_data.get('content')

    if not content and (
        (file_data.get('size') or 0) > INLINE_CONTENT_LIMIT or file_data.get('encoding') == 'none'
    ):
        logger.info(
            "products.json is %s bytes, too large for inline content; fetching blob %s",
            file_data.get('size'), sha,
        )
        enter(PipelineState.FETCHING_BLOB)
        content = client.get_blob(session, sha).get('content')

    enter(PipelineState.DECODING)
    return decode_document(content), sha


class MutationPipeline:
    """A single fetch, mutate, commit cycle for one mutation request.

    Ends in ``DONE`` or ``FAILED``; nothing is committed unless every stage
    before ``COMMITTING`` succeeded.
    """

    def __init__(self, client, session, action, data):
        self.client = client
        self.session = session
        self.action = action
        self.data = data
        self.state = PipelineState.START

    def _enter(self, state):
        logger.debug("%s pipeline: %s -> %s", self.action, self.state.value, state.value)
        self.state = state

    def run(self):
        try:
            document, sha = fetch_document(self.client, self.session, on_state=self._enter)
            original_count = len(document['products'])

            self._enter(PipelineState.MUTATING)
            outcome = apply_mutation(self.action, document['products'], self.data)
            document = {**document, 'products': outcome.products}
            logger.info(
                "%s %s: %d -> %d products",
                self.action, outcome.product_id, original_count, len(outcome.products),
            )

            self._enter(PipelineState.SIZE_CHECK)
            content = encode_document(document)
            check_document_size(len(content))

            self._enter(PipelineState.COMMITTING)
            response = self.client.put_file(self.session, content, outcome.commit_message, sha)
        except Exception:
            self._enter(PipelineState.FAILED)
            raise

        self._enter(PipelineState.DONE)
        return {
            'success': True,
            'message': outcome.message,
            'sha': (response.get('content') or {}).get('sha'),
            'product_count': len(outcome.products),
            'product_id': outcome.product_id,
            'commit_message': outcome.commit_message,
        }


class DocumentUpdater:
    def __init__(self, client, record_commits=None):
        self.client = client
        if record_commits is None:
            record_commits = getattr(settings, 'CATALOG_RECORD_COMMITS', True)
        self.record_commits = record_commits

    def apply(self, action, data):
        session = self.client.make_session()
        attempts = CONFLICT_RETRIES + 1

        for attempt in range(1, attempts + 1):
            pipeline = MutationPipeline(self.client, session, action, data)
            try:
                result = pipeline.run()
            except ConcurrentModification:
                if attempt == attempts:
                    raise
                logger.warning(
                    "Revision conflict on %s, re-fetching products.json (attempt %d/%d)",
                    action, attempt, attempts,
                )
                continue

            logger.info("Committed %s: %s", action, result['message'])
            if self.record_commits:
                self._record(action, result)
            return {
                'success': True,
                'message': result['message'],
                'sha': result['sha'],
                'product_count': result['product_count'],
            }

    def read_document(self):
        session = self.client.make_session()
        return fetch_document(self.client, session)

    def test_connection(self):
        if not self.client.token:
            raise NotConfigured("GitHub token not configured in environment variables")

        session = self.client.make_session()
        repository = self.client.get_repository(session)
        full_name = repository.get('full_name') or f"{self.client.owner}/{self.client.repo}"
        return {
            'success': True,
            'message': f"GitHub connection successful: {full_name}",
            'config': {
                'owner': self.client.owner,
                'repo': self.client.repo,
                'branch': self.client.branch,
                'hasToken': bool(self.client.token),
            },
        }

    def _record(self, action, result):
        try:
            CatalogCommit.objects.create(
                action=action,
                product_id=result['product_id'] or '',
                revision=result['sha'] or '',
                message=result['commit_message'],
                product_count=result['product_count'],
            )
        except DatabaseError as exc:
            # The remote commit already landed; the ledger is best effort.
            logger.error("Failed to record commit %s for %s: %s", result['sha'], action, exc)


def build_updater():
    client_class = import_string(settings.CATALOG_CLIENT_CLASS)
    return DocumentUpdater(client=client_class())


_updater = None
_updater_lock = threading.Lock()


def get_updater():
    global _updater
    if _updater is None:
        with _updater_lock:
            if _updater is None:
                _updater = build_updater()
    return _updater
