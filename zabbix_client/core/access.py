"""
zabbix_client Access Guard

Every operation call passes through here before it reaches a handler.

This module provides:
- API key check (constant-time comparison)
- Operation allow-list
- Rate limiting (max requests per minute)
- Request logging (bounded in-memory audit trail, secrets stripped)
"""

import hmac
import time
import logging
import threading
from collections import deque
from datetime import datetime
from typing import Optional
from dataclasses import dataclass

from zabbix_client.core.config import ZabbixClientConfig

logger = logging.getLogger("zabbix_client.access")

# Parameters never written to the audit log
_SECRET_PARAMS = ("key", "api_key")

# Oldest records are dropped past this many
_MAX_LOG_ENTRIES = 500


@dataclass
class RequestRecord:
    """Record of one operation request."""
    timestamp: str
    operation: str
    params: dict
    approved: bool
    result: str  # "success" | "denied" | "blocked"
    reason: Optional[str] = None


class AccessGuard:
    """
    Central access check for monitoring operations.

    If the guard says no, the operation does not run.
    """

    def __init__(self, config: ZabbixClientConfig):
        self.config = config
        self._request_log: deque[RequestRecord] = deque(maxlen=_MAX_LOG_ENTRIES)
        self._request_timestamps: list[float] = []
        self._rate_lock = threading.Lock()
        self._log_lock = threading.Lock()

    # =========================================================================
    # REQUEST APPROVAL
    # =========================================================================

    def approve(self, operation: str, params: dict) -> tuple[bool, str]:
        """
        Check if an operation call should be allowed.

        Returns: (approved: bool, reason: str)

        Check order:
        1. API key configured and not matching? → DENY
        2. Operation not allowed? → BLOCK
        3. Rate limit exceeded? → BLOCK
        4. All clear → APPROVE
        """

        # 1. API key
        if not self._check_api_key(params):
            self._log_request(operation, params, False, "denied",
                              "Invalid or missing API key")
            return False, "Access denied: invalid or missing API key"

        # 2. Allow-list
        if not self.is_operation_allowed(operation):
            self._log_request(operation, params, False, "blocked",
                              "Operation not allowed")
            return False, f"Operation '{operation}' is not allowed"

        # 3. Rate limit
        if not self._check_rate_limit():
            self._log_request(operation, params, False, "blocked",
                              "Rate limit exceeded")
            return False, (
                f"Rate limit: maximum {self.config.access.max_requests_per_minute} "
                "requests/minute exceeded"
            )

        # 4. All clear
        self._record_request_timestamp()
        self._log_request(operation, params, True, "success")
        return True, "Approved"

    def _check_api_key(self, params: dict) -> bool:
        expected = self.config.access.api_key
        if not expected:
            return True

        given = params.get("key")
        if not isinstance(given, str) or not given:
            return False
        return hmac.compare_digest(given.encode("utf-8"), expected.encode("utf-8"))

    def is_operation_allowed(self, operation: str) -> bool:
        allowed = self.config.access.allowed_operations
        return "*" in allowed or operation in allowed

    # =========================================================================
    # RATE LIMITER
    # =========================================================================

    def _check_rate_limit(self) -> bool:
        """Check if we're within rate limits. Thread-safe."""
        now = time.time()
        window = 60.0

        with self._rate_lock:
            self._request_timestamps = [
                t for t in self._request_timestamps if now - t < window
            ]
            return len(self._request_timestamps) < self.config.access.max_requests_per_minute

    def _record_request_timestamp(self):
        """Record that a request was approved. Thread-safe."""
        with self._rate_lock:
            self._request_timestamps.append(time.time())

    # =========================================================================
    # REQUEST LOG
    # =========================================================================

    def _log_request(
        self,
        operation: str,
        params: dict,
        approved: bool,
        result: str,
        reason: Optional[str] = None,
    ):
        """Log a request for audit trail."""
        record = RequestRecord(
            timestamp=datetime.now().isoformat(),
            operation=operation,
            params={k: v for k, v in params.items() if k not in _SECRET_PARAMS},
            approved=approved,
            result=result,
            reason=reason,
        )
        with self._log_lock:
            self._request_log.append(record)

        if result == "denied":
            logger.warning(f"DENIED: {operation} — {reason}")
        elif result == "blocked":
            logger.warning(f"BLOCKED: {operation} — {reason}")
        else:
            logger.debug(f"OK: {operation}")

    def get_request_log(self, last_n: int = 50) -> list[dict]:
        """Get recent request log entries."""
        with self._log_lock:
            records = list(self._request_log)[-last_n:] if last_n > 0 else []
        return [
            {
                "timestamp": r.timestamp,
                "operation": r.operation,
                "params": r.params,
                "approved": r.approved,
                "result": r.result,
                "reason": r.reason,
            }
            for r in records
        ]

    def get_status(self) -> dict:
        """Get current access guard status."""
        now = time.time()
        with self._rate_lock:
            recent = len([t for t in self._request_timestamps if now - t < 60])
        with self._log_lock:
            total = len(self._request_log)
        return {
            "api_key_required": bool(self.config.access.api_key),
            "allowed_operations": list(self.config.access.allowed_operations),
            "requests_this_minute": recent,
            "max_requests_per_minute": self.config.access.max_requests_per_minute,
            "total_requests_logged": total,
        }
