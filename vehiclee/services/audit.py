"""
Audit logging service.
Append-only audit log with integrity hashing.

Entries are added to the caller's session and flushed, never committed here,
so an entry lands in the same transaction as the change it describes.
"""
import hashlib
import json
import uuid
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List

from sqlalchemy.orm import Session

from ..config import settings
from ..models.models import AuditLog, User


def _integrity_secret() -> str:
    return settings.audit_secret or settings.jwt_secret


def _canonical_hash(entry: AuditLog) -> str:
    created_at = entry.created_at
    if created_at is not None and created_at.tzinfo is not None:
        created_at = created_at.astimezone(timezone.utc).replace(tzinfo=None)
    canonical_data = {
        "actor_id": str(entry.actor_id) if entry.actor_id else None,
        "actor_role": entry.actor_role,
        "action": entry.action,
        "entity_type": entry.entity_type,
        "entity_id": str(entry.entity_id) if entry.entity_id else None,
        "changes": entry.changes,
        "reason": entry.reason,
        "created_at": created_at.isoformat() if created_at else None,
    }
    # Drop None values and sort keys for a stable representation
    canonical_data = {k: v for k, v in canonical_data.items() if v is not None}
    canonical_json = json.dumps(canonical_data, sort_keys=True, default=str)
    return hashlib.sha256(f"{canonical_json}:{_integrity_secret()}".encode()).hexdigest()


def record_audit(
    db: Session,
    actor: Optional[User],
    action: str,
    entity_type: Optional[str],
    entity_id: Optional[uuid.UUID],
    changes: Optional[Dict[str, Any]] = None,
    reason: Optional[str] = None,
) -> AuditLog:
    """
    Append an audit entry to the current transaction.

    Args:
        db: Database session (the caller commits)
        actor: User who performed the action, None for system/device actions
        action: Free-text action tag, e.g. campaign_created
        entity_type: creative|campaign|device|...
        entity_id: Entity primary key
        changes: Structured change payload (JSON-serialisable)
        reason: Optional human-readable reason

    Returns:
        The pending AuditLog row
    """
    entry = AuditLog(
        actor_id=actor.id if actor else None,
        actor_role=actor.role if actor else "system",
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        changes=json.loads(json.dumps(changes, default=str)) if changes is not None else None,
        reason=reason,
        created_at=datetime.now(timezone.utc),
    )
    entry.integrity_hash = _canonical_hash(entry)
    db.add(entry)
    db.flush()
    return entry


def verify_integrity(entry: AuditLog) -> bool:
    """True when the stored hash still matches the entry's content."""
    return entry.integrity_hash is not None and entry.integrity_hash == _canonical_hash(entry)


def get_audit_logs(
    db: Session,
    entity_type: Optional[str] = None,
    entity_id: Optional[uuid.UUID] = None,
    limit: int = 100,
    offset: int = 0
) -> List[AuditLog]:
    query = db.query(AuditLog)

    if entity_type:
        query = query.filter(AuditLog.entity_type == entity_type)

    if entity_id:
        query = query.filter(AuditLog.entity_id == entity_id)

    query = query.order_by(AuditLog.created_at.desc())
    query = query.limit(limit).offset(offset)

    return query.all()


def compute_diff(before: Dict, after: Dict) -> Dict:
    """
    Compute a diff between two dictionaries.

    Returns:
        Dict with before/after values for changed fields
    """
    diff = {}
    all_keys = set(before.keys()) | set(after.keys())

    for key in all_keys:
        before_val = before.get(key)
        after_val = after.get(key)

        if before_val != after_val:
            diff[key] = {
                "before": before_val,
                "after": after_val,
            }

    return diff
