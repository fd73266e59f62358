# app/x402/audit.py
"""
Audit logging for payment link and x402 download events.

Every event that changes payment state, or that tells a client it has to
pay, is appended to a JSON lines file so the trail can be reviewed later:

- Payment link created / deactivated
- 402 challenge returned (amount, currency, destination, resource)
- Payment confirmed (link or file, transaction ids, gasless flag)
- Payment rejected (reason)
- Download served
- Error (type, context)

Log location: AUDIT_LOG_PATH. Disable with AUDIT_LOG_ENABLED=false.
Writing an event never raises; failures only reach the application log.
"""
import json
import logging
import uuid
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from app.core.config import settings

logger = logging.getLogger(__name__)


class AuditEventType(Enum):
    """Types of audit events that can be logged."""
    LINK_CREATED = "link_created"
    LINK_DEACTIVATED = "link_deactivated"
    PAYMENT_REQUIRED_SENT = "payment_required_sent"
    PAYMENT_CONFIRMED = "payment_confirmed"
    PAYMENT_REJECTED = "payment_rejected"
    DOWNLOAD_SERVED = "download_served"
    ERROR = "error"


def generate_request_id() -> str:
    """Generate a short unique id to correlate events."""
    return str(uuid.uuid4())[:8]


def get_audit_log_path() -> Path:
    return Path(settings.AUDIT_LOG_PATH)


def create_audit_event(
    event_type: AuditEventType,
    data: Dict[str, Any],
    client_ip: Optional[str] = None,
    wallet_address: Optional[str] = None,
    request_id: Optional[str] = None
) -> Dict[str, Any]:
    """
    Create an audit event dictionary.

    Args:
        event_type: Type of event to log
        data: Event-specific data
        client_ip: Client IP address (if available)
        wallet_address: Payer or creator wallet address (if available)
        request_id: Correlation id (generated when omitted)
    """
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "event_type": event_type.value,
        "request_id": request_id or generate_request_id(),
        "client_ip": client_ip,
        "wallet_address": wallet_address,
        "data": data
    }


def log_audit_event(
    event_type: AuditEventType,
    data: Dict[str, Any],
    client_ip: Optional[str] = None,
    wallet_address: Optional[str] = None,
    request_id: Optional[str] = None
) -> Optional[str]:
    """
    Append an event to the audit log.

    Returns:
        The request_id used for this event, or None if nothing was written
    """
    if not settings.AUDIT_LOG_ENABLED:
        return None

    event = create_audit_event(
        event_type=event_type,
        data=data,
        client_ip=client_ip,
        wallet_address=wallet_address,
        request_id=request_id
    )

    try:
        log_path = get_audit_log_path()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        with open(log_path, "a") as f:
            f.write(json.dumps(event) + "\n")

        logger.debug(f"Audit event logged: {event_type.value} [{event['request_id']}]")
        return event["request_id"]

    except OSError as e:
        logger.error(f"Failed to write audit event: {e}")
        return None


def log_link_created(slug, amount, recipient_address, client_ip=None, created_by=None) -> Optional[str]:
    payload = {"slug": slug, "amount": amount, "recipient_address": recipient_address}
    return log_audit_event(AuditEventType.LINK_CREATED, payload, client_ip, created_by)


def log_link_deactivated(slug, client_ip=None) -> Optional[str]:
    return log_audit_event(AuditEventType.LINK_DEACTIVATED, {"slug": slug}, client_ip)


def log_payment_required_sent(client_ip, amount, currency, pay_to, resource) -> Optional[str]:
    """Log a 402 challenge handed to a client."""
    payload = {"amount": amount, "currency": currency, "pay_to": pay_to, "resource": resource}
    return log_audit_event(AuditEventType.PAYMENT_REQUIRED_SENT, payload, client_ip)


def log_payment_confirmed(client_ip, resource, transaction_id, gasless, amount=None, payer=None) -> Optional[str]:
    """Log an accepted (client-asserted) payment for a link or file."""
    payload = {
        "resource": resource,
        "transaction_id": transaction_id,
        "gasless": gasless,
        "amount": amount,
    }
    return log_audit_event(AuditEventType.PAYMENT_CONFIRMED, payload, client_ip, payer)


def log_payment_rejected(client_ip, resource, reason, payer=None) -> Optional[str]:
    payload = {"resource": resource, "reason": reason}
    return log_audit_event(AuditEventType.PAYMENT_REJECTED, payload, client_ip, payer)


def log_download_served(client_ip, file_id, size_bytes) -> Optional[str]:
    payload = {"file_id": file_id, "size_bytes": size_bytes}
    return log_audit_event(AuditEventType.DOWNLOAD_SERVED, payload, client_ip)


def log_error(client_ip, error_type, error_message, context=None) -> Optional[str]:
    payload = {"error_type": error_type, "error_message": error_message, "context": context or {}}
    return log_audit_event(AuditEventType.ERROR, payload, client_ip)


def read_audit_log(
    max_entries: int = 100,
    event_type: Optional[AuditEventType] = None,
    client_ip: Optional[str] = None
) -> List[Dict[str, Any]]:
    """
    Read entries from the audit log.

    Args:
        max_entries: Maximum number of entries to return
        event_type: Filter by event type (optional)
        client_ip: Filter by client IP (optional)

    Returns:
        List of audit events (most recent first)
    """
    log_path = get_audit_log_path()
    if not log_path.exists():
        return []

    events = []
    try:
        with open(log_path, "r") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    event = json.loads(line)
                except json.JSONDecodeError:
                    continue
                if event_type and event.get("event_type") != event_type.value:
                    continue
                if client_ip and event.get("client_ip") != client_ip:
                    continue
                events.append(event)
    except OSError as e:
        logger.error(f"Failed to read audit log: {e}")
        return []

    return list(reversed(events))[:max_entries]
