from django.core.cache import cache
from django.db import DatabaseError, connection
from django.http import JsonResponse


def health_check(request):
    status = {"db": "unknown", "cache": "unknown"}
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
        status["db"] = "ok"
    except DatabaseError as e:
        return JsonResponse(
            {"status": "error", "detail": str(e), "components": status},
            status=503
        )

    # django-redis is configured with IGNORE_EXCEPTIONS, so a dead Redis reads as a miss
    cache.set("health:ping", "pong", timeout=5)
    status["cache"] = "ok" if cache.get("health:ping") == "pong" else "degraded"

    return JsonResponse({"status": "ok", "components": status}, status=200)
