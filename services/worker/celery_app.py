"""Celery application configuration.

Uses Redis as the broker and result backend. Supports TLS connections
(rediss://) for hosted Redis.
"""

from __future__ import annotations

import logging
import ssl
from urllib.parse import parse_qs, urlparse

from celery import Celery
from celery.signals import worker_ready

from core.config import load_settings

logger = logging.getLogger(__name__)

_settings = load_settings()

REDIS_URL = _settings.redis_url or "redis://localhost:6379/0"

# -------------------------------------------------------------------
# TLS / SSL configuration
# -------------------------------------------------------------------
_use_tls = REDIS_URL.startswith("rediss://")

broker_opts: dict = {}

if _use_tls:
    # ssl_cert_reqs may be given in the URL query string (e.g. ?ssl_cert_reqs=CERT_NONE)
    _qs = parse_qs(urlparse(REDIS_URL).query)
    _cert_reqs_str = (_qs.get("ssl_cert_reqs", ["CERT_REQUIRED"])[0]).upper()
    _ssl_cert_reqs = {
        "CERT_NONE": ssl.CERT_NONE,
        "CERT_OPTIONAL": ssl.CERT_OPTIONAL,
    }.get(_cert_reqs_str, ssl.CERT_REQUIRED)

    broker_opts = {
        "broker_use_ssl": {"ssl_cert_reqs": _ssl_cert_reqs},
        "redis_backend_use_ssl": {"ssl_cert_reqs": _ssl_cert_reqs},
    }

app = Celery(
    "planner_worker",
    broker=REDIS_URL,
    backend=REDIS_URL,
    include=["services.worker.tasks.plans"],
)

# The hard limit must outlast the upstream deadline plus recovery work.
_time_limit = int(_settings.upstream_timeout) + 60

app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=_time_limit,
    task_soft_time_limit=_time_limit - 15,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    broker_connection_retry_on_startup=True,
    broker_connection_max_retries=10,
    **broker_opts,
)


@worker_ready.connect
def _on_worker_ready(**kwargs):
    """Log connection status when worker successfully starts."""
    masked = REDIS_URL[:20] + "..." if len(REDIS_URL) > 20 else REDIS_URL
    logger.info("Worker ready, broker: %s (TLS=%s)", masked, _use_tls)
    logger.info(
        "Upstream: provider=%s deadline=%gs retries=%d",
        _settings.llm_provider, _settings.upstream_timeout, _settings.max_retries,
    )
