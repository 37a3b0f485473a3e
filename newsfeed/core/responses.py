def error_response(code: str, message: str, trace_id: str, status: int = 400, details: dict | None = None) -> tuple[dict, int]:
    payload = {
        "error": message,
        "code": code,
        "trace_id": trace_id,
    }
    if details:
        payload["details"] = details
    return payload, status


def feed_headers(max_age: int, disposition: str) -> dict[str, str]:
    return {
        "cache-control": f"public, max-age={max_age}",
        "x-cache": disposition,
    }
