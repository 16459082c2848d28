import hashlib
import json
import logging
import time
import uuid

from django.conf import settings
from django.core.cache import cache
from django.http import JsonResponse
from django.utils.deprecation import MiddlewareMixin

logger = logging.getLogger(__name__)

IDEMPOTENCY_HEADER = "HTTP_IDEMPOTENCY_KEY"
MAX_REQUEST_BODY_SIZE = 2 * 1024 * 1024  # 2MB Limit for Idempotency
LOCK_TIMEOUT = 60


class RequestLogMiddleware(MiddlewareMixin):
    """
    One log line per API request with status and latency.
    """

    def process_request(self, request):
        request._started_at = time.monotonic()
        request.request_id = request.META.get("HTTP_X_REQUEST_ID") or uuid.uuid4().hex

    def process_response(self, request, response):
        started = getattr(request, "_started_at", None)
        if started is not None and request.path.startswith("/api/"):
            elapsed_ms = (time.monotonic() - started) * 1000
            logger.info(
                "%s %s -> %s (%.1fms)",
                request.method,
                request.path,
                response.status_code,
                elapsed_ms,
                extra={"request_id": getattr(request, "request_id", "")},
            )
        request_id = getattr(request, "request_id", None)
        if request_id:
            response["X-Request-ID"] = request_id
        return response


class IdempotencyMiddleware(MiddlewareMixin):
    """
    Replays the stored response for a repeated `Idempotency-Key` on POST.

    Guards payment submissions against double clicks: while the first request
    is in flight a duplicate gets 409, afterwards it gets the same response.
    """

    def _cache_key(self, key):
        return f"idemp_resp:{key}"

    def process_request(self, request):
        if request.method != "POST":
            return None

        key = request.META.get(IDEMPOTENCY_HEADER)
        if not key:
            return None

        if int(request.META.get("CONTENT_LENGTH") or 0) > MAX_REQUEST_BODY_SIZE:
            logger.warning("Idempotency: Request body too large, skipping.")
            return None

        body_hash = hashlib.sha256(request.body or b"").hexdigest()

        stored = cache.get(self._cache_key(key))
        if stored is not None:
            if stored["request_hash"] != body_hash:
                return JsonResponse(
                    {"error": "Idempotency-Key reused with a different payload.", "code": "idempotency_mismatch"},
                    status=422,
                )
            return JsonResponse(stored["body"], status=stored["status"], safe=isinstance(stored["body"], dict))

        lock_key = f"idemp_lock:{key}"
        request_id = uuid.uuid4().hex
        if not cache.add(lock_key, request_id, timeout=LOCK_TIMEOUT):
            return JsonResponse(
                {"error": "Request is currently being processed. Please wait.", "code": "in_progress"},
                status=409,
            )

        request._idempotency_key = key
        request._idempotency_request_hash = body_hash
        request._idempotency_lock_key = lock_key
        request._idempotency_req_id = request_id
        return None

    def process_response(self, request, response):
        key = getattr(request, "_idempotency_key", None)
        if not key:
            return response

        lock_key = request._idempotency_lock_key
        # Only release the lock if we still own it
        if cache.get(lock_key) == request._idempotency_req_id:
            cache.delete(lock_key)

        # 5xx responses are never replayed
        if not (200 <= response.status_code < 500):
            return response

        content_type = response.get("Content-Type", "").split(";")[0].strip()
        if content_type != "application/json":
            return response

        try:
            body = json.loads(response.content.decode("utf-8"))
        except (ValueError, UnicodeDecodeError):
            logger.warning("Idempotency: response body is not JSON, skipping store.")
            return response

        cache.set(
            self._cache_key(key),
            {
                "request_hash": request._idempotency_request_hash,
                "status": response.status_code,
                "body": body,
            },
            timeout=getattr(settings, "IDEMPOTENCY_KEY_TTL", 300),
        )
        return response
