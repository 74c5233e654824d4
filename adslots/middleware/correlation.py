# writes: correlation id, method / path / status, duration
# does NOT block the request; does NOT write to the DB

import json
import logging
import time
import uuid

from fastapi import Request

logger = logging.getLogger("adslots.audit")

HEADER = "X-Correlation-ID"


async def correlation_middleware(request: Request, call_next):
    start_ts = time.time()
    correlation_id = request.headers.get(HEADER) or uuid.uuid4().hex
    request.state.correlation_id = correlation_id

    response = await call_next(request)
    response.headers[HEADER] = correlation_id

    duration_ms = int((time.time() - start_ts) * 1000)

    record = {
        "ts": int(start_ts),
        "correlation_id": correlation_id,
        "method": request.method,
        "path": request.url.path,
        "status": response.status_code,
        "ip": request.headers.get("X-Real-IP") or (request.client.host if request.client else None),
        "duration_ms": duration_ms,
    }

    logger.info(json.dumps(record, ensure_ascii=False))

    return response
