class CatalogError(Exception):
    """Base for every failure the catalog pipeline reports to a caller."""

    status_code = 500


class ValidationError(CatalogError):
    status_code = 400


class NotFound(CatalogError):
    status_code = 404


class ConcurrentModification(CatalogError):
    status_code = 409


class PayloadTooLarge(CatalogError):
    status_code = 413


class DecodeError(CatalogError):
    status_code = 500


class DataLossDetected(CatalogError):
    status_code = 500


class NotConfigured(CatalogError):
    status_code = 500


class FetchFailed(CatalogError):
    status_code = 502


class CommitFailed(CatalogError):
    status_code = 502


class QueueFull(CatalogError):
    status_code = 503
