import json
import logging
import time
from pathlib import Path

from aiohttp import web

log = logging.getLogger(__name__)


def utc_ts():
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


class TrafficLog:
    """Append-only JSON-lines log of HTTP exchanges and bot turns. No path, no log."""

    def __init__(self, path=None):
        self.path = Path(path) if path else None

    @property
    def enabled(self):
        return self.path is not None

    def start(self):
        if not self.enabled:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.write({"event": "startup", "log_path": str(self.path)})
        log.info("[traffic-log] Using %s", self.path)

    def write(self, record: dict):
        if not self.enabled:
            return
        record = {"ts": utc_ts(), **record}
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(json.dumps(record, ensure_ascii=False, default=str) + "\n")

    def middleware(self):
        @web.middleware
        async def traffic_http_logger(request, handler):
            t0 = time.time()
            req_headers = {k: ("<masked>" if k.lower() == "authorization" else v)
                           for k, v in request.headers.items()
                           if k.lower() in ("content-type", "user-agent", "authorization")}

            raw_body = None
            if request.can_read_body:
                try:
                    raw_body = await request.text()
                except (UnicodeDecodeError, ConnectionError):
                    raw_body = None

            http = {
                "remote": request.remote,
                "method": request.method,
                "path": request.path,
                "query": request.query_string,
                "headers": req_headers,
                "body_preview": (raw_body[:2000] if raw_body else None),
            }
            try:
                response = await handler(request)
            except Exception as e:
                http.update(status=500, elapsed_ms=int((time.time() - t0) * 1000))
                self.write({"event": "http_traffic_error", "http": http, "error": f"{type(e).__name__}: {e}"})
                raise

            resp_text = getattr(response, "text", None)
            http.update(
                status=response.status,
                resp_content_type=getattr(response, "content_type", None),
                resp_length=getattr(response, "content_length", None),
                resp_text_preview=(resp_text[:1000] if isinstance(resp_text, str) else None),
                elapsed_ms=int((time.time() - t0) * 1000),
            )
            self.write({"event": "http_traffic", "http": http})
            return response

        return traffic_http_logger
