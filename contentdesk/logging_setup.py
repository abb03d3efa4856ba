# Copyright (c) 2026 Mohammed Hassan. All rights reserved.
# Proprietary and confidential. Unauthorized copying, modification, distribution, or use is prohibited.

import json
import logging
import queue
import sys
import threading
import contextvars
from datetime import datetime, timezone

import requests
from pythonjsonlogger import jsonlogger

from .config import settings

SERVICE_NAME = "contentdesk"

request_id_var = contextvars.ContextVar("request_id", default=None)

# Key fragments whose values never leave the process
SECRET_MARKERS = ("token", "secret", "password", "key", "authorization", "cookie")
REDACTED = "***REDACTED***"

# Attributes LogRecord sets itself; passing them in `extra` raises KeyError
_RESERVED = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}

def _is_secret(key) -> bool:
    return isinstance(key, str) and any(marker in key.lower() for marker in SECRET_MARKERS)

def redact(value):
    """Mask secret-looking keys at any depth (LinkedIn and email errors arrive as nested dicts)."""
    if isinstance(value, dict):
        return {k: REDACTED if _is_secret(k) and isinstance(v, str) else redact(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [redact(v) for v in value]
    return value

class RedactingJsonFormatter(jsonlogger.JsonFormatter):
    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        log_record.setdefault("timestamp", datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ"))
        log_record["level"] = (log_record.get("level") or record.levelname).upper()
        log_record["service_name"] = SERVICE_NAME
        log_record["environment"] = settings.environment

        request_id = request_id_var.get()
        if request_id:
            log_record["request_id"] = request_id

        for key, value in list(log_record.items()):
            log_record[key] = REDACTED if _is_secret(key) and isinstance(value, str) else redact(value)

class LogShipHandler(logging.Handler):
    """Batches formatted records and posts them to an HTTP log ingest from a daemon thread.

    Shipping is best-effort: a full queue drops records and a failed POST is
    discarded, the console handler always keeps its copy.
    """
    def __init__(self, url: str, token: str, batch_size: int = 50, flush_interval: float = 3.0):
        super().__init__()
        self.url = url
        self.batch_size = batch_size
        self.flush_interval = flush_interval
        self.http = requests.Session()
        self.http.headers.update({"Authorization": f"Bearer {token}", "Content-Type": "application/json"})
        self.queue = queue.Queue(maxsize=10000)
        self._stopped = threading.Event()
        self.worker = threading.Thread(target=self._run, name="log-ship", daemon=True)
        self.worker.start()

    def _drain(self, limit: int) -> list:
        batch = []
        while len(batch) < limit:
            try:
                batch.append(self.queue.get_nowait())
            except queue.Empty:
                break
        return batch

    def _run(self):
        while not self._stopped.is_set():
            try:
                first = self.queue.get(timeout=self.flush_interval)
            except queue.Empty:
                continue
            self._send([first] + self._drain(self.batch_size - 1))

    def _send(self, batch: list):
        if not batch:
            return
        try:
            self.http.post(self.url, json=batch, timeout=5.0)
        except requests.RequestException:
            pass

    def emit(self, record):
        try:
            self.queue.put_nowait(json.loads(self.format(record)))
        except queue.Full:
            pass
        except Exception:
            self.handleError(record)

    def close(self):
        self._stopped.set()
        self._send(self._drain(self.queue.qsize()))
        self.http.close()
        super().close()

def setup_logging(level: int = logging.INFO):
    root = logging.getLogger()
    root.setLevel(level)
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    formatter = RedactingJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s")

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    root.addHandler(console)

    if settings.log_ship_token:
        shipper = LogShipHandler(settings.log_ship_url, settings.log_ship_token)
        shipper.setFormatter(formatter)
        root.addHandler(shipper)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

def log_event(event: str, level: str = "info", **fields):
    """Emit one structured event on the service logger.

    ``None`` values are dropped and keys that clash with LogRecord attributes
    are prefixed with ``field_``.
    """
    extra = {("field_" + k if k in _RESERVED else k): v for k, v in fields.items() if v is not None}
    extra["event"] = event
    numeric = logging.getLevelName(level.upper())
    logging.getLogger(SERVICE_NAME).log(numeric if isinstance(numeric, int) else logging.INFO, event, extra=extra)
