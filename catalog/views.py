import json
import logging

from django.conf import settings
from django.http import HttpResponse, JsonResponse
from django.views.decorators.csrf import csrf_exempt

from catalog.exceptions import CatalogError
from catalog.mutations import validate_envelope
from catalog.queue import get_mutation_queue
from catalog.updater import get_updater

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Headers': 'Content-Type',
    'Access-Control-Allow-Methods': 'POST, OPTIONS',
}


def _with_cors(response):
    for header, value in CORS_HEADERS.items():
        response[header] = value
    return response


def _json(body, status=200):
    return _with_cors(JsonResponse(body, status=status))


@csrf_exempt
def products_api(request):
    if request.method == 'OPTIONS':
        return _with_cors(HttpResponse(status=200))

    if request.method != 'POST':
        return _json({'error': 'Method not allowed'}, status=405)

    if not request.body:
        return _json({'error': 'Request body is required'}, status=400)

    try:
        payload = json.loads(request.body)
    except ValueError:
        return _json({'error': 'Invalid JSON in request body'}, status=400)

    if not settings.GITHUB_TOKEN:
        logger.error("No GitHub token found in environment variables")
        return _json({'error': 'GitHub token not configured in environment variables'}, status=500)

    try:
        action, data = validate_envelope(payload)
        if action == 'test_connection':
            result = get_updater().test_connection()
        else:
            result = get_mutation_queue().submit(action, data).result()
    except CatalogError as exc:
        logger.warning("Catalog request failed (%s): %s", type(exc).__name__, exc)
        return _json({'error': str(exc)}, status=exc.status_code)
    except Exception:
        logger.exception("Unexpected error handling catalog request")
        return _json({'error': 'Internal server error'}, status=500)

    return _json(result)
