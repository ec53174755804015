# grievance_portal/monitoring.py
"""
Centralized monitoring: Prometheus metrics, structured JSON logging, optional Sentry.

Env vars:
- PROMETHEUS_ENABLED (default: true)
- SENTRY_DSN (optional)
- LOG_AS_JSON (default: true)
- LOG_LEVEL (default: INFO)
- ENVIRONMENT (default: development)
"""

import os
import logging
import time
from typing import Tuple

import sentry_sdk
from prometheus_client import (
    Counter, Histogram,
    generate_latest, CONTENT_TYPE_LATEST, REGISTRY,
)
from pythonjsonlogger import jsonlogger

# --- ENV flags
PROMETHEUS_ENABLED = os.getenv("PROMETHEUS_ENABLED", "true").lower() in ("1", "true", "yes")
SENTRY_DSN = os.getenv("SENTRY_DSN", None)
LOG_AS_JSON = os.getenv("LOG_AS_JSON", "true").lower() in ("1", "true", "yes")
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")


# --- Logger setup
def setup_logger(name: str = "grievance-portal", level: int = None) -> logging.Logger:
    level = logging.getLevelName(os.getenv("LOG_LEVEL", "INFO")) if level is None else level
    logger = logging.getLogger(name)
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        if LOG_AS_JSON:
            fmt = jsonlogger.JsonFormatter(
                "%(asctime)s %(levelname)s %(name)s %(message)s"
            )
            handler.setFormatter(fmt)
        logger.addHandler(handler)
    return logger


logger = setup_logger()

# --- Sentry (optional)
if SENTRY_DSN:
    sentry_sdk.init(dsn=SENTRY_DSN, environment=ENVIRONMENT)
    logger.info("Sentry initialized")


# --- Prometheus metrics
REQUEST_COUNT = Counter(
    "grievance_http_requests_total",
    "Total /api requests",
    ["method", "endpoint", "status"],
)

REQUEST_LATENCY = Histogram(
    "grievance_http_request_latency_seconds",
    "Request latency in seconds",
    ["endpoint"],
)

OTP_ISSUED = Counter(
    "grievance_otp_issued_total",
    "OTP issue attempts",
    ["outcome"],
)

OTP_VERIFICATIONS = Counter(
    "grievance_otp_verifications_total",
    "OTP verification attempts",
    ["outcome"],
)

SUBMISSIONS = Counter(
    "grievance_submissions_total",
    "Grievance submission attempts",
    ["outcome"],
)

STATUS_TRANSITIONS = Counter(
    "grievance_status_transitions_total",
    "Status transition attempts",
    ["outcome"],
)

NOTIFICATIONS = Counter(
    "grievance_notifications_total",
    "Outgoing emails",
    ["kind", "outcome"],
)


# --- Helper wrappers (never crash the app)
def observe_request(start_ts: float, endpoint: str, method: str, status: str):
    try:
        REQUEST_LATENCY.labels(endpoint=endpoint).observe(time.time() - start_ts)
        REQUEST_COUNT.labels(method=method, endpoint=endpoint, status=status).inc()
    except Exception:
        pass


def inc_otp_issued(outcome: str):
    try:
        OTP_ISSUED.labels(outcome=outcome).inc()
    except Exception:
        pass


def inc_otp_verification(outcome: str):
    try:
        OTP_VERIFICATIONS.labels(outcome=outcome).inc()
    except Exception:
        pass


def inc_submission(outcome: str):
    try:
        SUBMISSIONS.labels(outcome=outcome).inc()
    except Exception:
        pass


def inc_status_transition(outcome: str):
    try:
        STATUS_TRANSITIONS.labels(outcome=outcome).inc()
    except Exception:
        pass


def inc_notification(kind: str, outcome: str):
    try:
        NOTIFICATIONS.labels(kind=kind, outcome=outcome).inc()
    except Exception:
        pass


def prometheus_metrics_response() -> Tuple[bytes, str]:
    """Return (body_bytes, content_type) for Prometheus scrape."""
    try:
        return generate_latest(REGISTRY), CONTENT_TYPE_LATEST
    except Exception:
        return b"", CONTENT_TYPE_LATEST
