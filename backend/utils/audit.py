"""
Structured audit logging for the auth backend.

Every identity, grant and project change, every login attempt and every
rolled-back transaction is written as one JSON line to the dedicated
'audit' logger. The acting user and a request id can be attached to the
current context and are picked up by every event logged from it.

Key features:
- Thread-safe and async-safe request_id / actor tracking via ContextVar
- Structured JSON output with ISO8601 timestamps
- Convenience methods for entity changes, logins, projects and rollbacks
"""

import json
import logging
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# Context variable for tracking request_id across calls
_request_id_context: ContextVar[Optional[str]] = ContextVar(
    'request_id', default=None
)

# Context variable for tracking actor (authenticated user) across calls
_actor_context: ContextVar[Optional[str]] = ContextVar(
    'actor', default=None
)


class AuditLogger:
    """
    Structured audit logger for auth mutations and logins.

    All events are written to a dedicated 'audit' logger in JSON format.
    """

    def __init__(self):
        self.logger = logging.getLogger('audit')

    def set_request_id(self, request_id: str) -> None:
        _request_id_context.set(request_id)

    def get_request_id(self) -> Optional[str]:
        return _request_id_context.get()

    def set_actor(self, actor: str) -> None:
        """Set the acting user for this context."""
        _actor_context.set(actor)

    def get_actor(self) -> Optional[str]:
        return _actor_context.get()

    def log(
        self,
        action: str,
        actor: Optional[str],
        resource: str,
        resource_id: str,
        status: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Core method to log a structured audit event.

        Args:
            action: Type of action performed (e.g., 'CREATE', 'DELETE', 'LOGIN')
            actor: User performing the action; falls back to the context actor
            resource: Kind of record affected (e.g., 'User', 'Access', 'Project')
            resource_id: Identifier of the affected record
            status: Result status ('success', 'failure', 'rolled_back')
            details: Optional dict of additional context
        """
        event = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'action': action,
            'actor': actor or self.get_actor() or 'system',
            'resource': resource,
            'resource_id': resource_id,
            'status': status,
            'request_id': self.get_request_id(),
            'details': details or {},
        }
        self.logger.info(json.dumps(event, default=str))

    def log_entity_change(
        self,
        operation: str,
        resource: str,
        resource_id: Optional[str],
        actor: Optional[str] = None,
        name: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Log creation, update or deletion of a user, group, target, belong or access.

        Args:
            operation: 'CREATE', 'UPDATE' or 'DELETE'
            resource: Kind of record ('User', 'Group', ...)
            resource_id: Record id
            actor: Creator/updater recorded on the entity, if any
            name: Optional display name of the record
            details: Optional extra fields (endpoints, permission, ...)
        """
        payload = dict(details or {})
        if name:
            payload['name'] = name
        self.log(
            action=operation,
            actor=actor,
            resource=resource,
            resource_id=str(resource_id),
            status='success',
            details=payload,
        )

    def log_login(self, username: str, success: bool) -> None:
        """Log a credential check; the candidate password is never logged."""
        self.log(
            action='LOGIN',
            actor=username,
            resource='User',
            resource_id=username,
            status='success' if success else 'failure',
        )

    def log_project_change(
        self,
        operation: str,
        project_id: str,
        actor: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Log project lifecycle operations.

        Args:
            operation: 'CREATE', 'DELETE', 'UPDATE', 'ADD_GRAPH' or 'REMOVE_GRAPH'
            project_id: Project id
            actor: Project creator, if known
            details: Optional dict (name, graph, group/target ids)
        """
        self.log(
            action=operation,
            actor=actor,
            resource='Project',
            resource_id=str(project_id),
            status='success',
            details=details,
        )

    def log_rollback(self, operation: str, error: BaseException) -> None:
        """Log a transactional unit that failed and was rolled back."""
        self.log(
            action='ROLLBACK',
            actor=None,
            resource='Transaction',
            resource_id=operation,
            status='rolled_back',
            details={
                'error_type': type(error).__name__,
                'error_message': str(error),
            },
        )

    def log_seed_data(self, status: str, database: str) -> None:
        """
        Log demo data seeding.

        Args:
            status: Operation status (e.g., 'success', 'failure')
            database: Target database file
        """
        self.log(
            action='SEED',
            actor='system',
            resource='SeedData',
            resource_id='initialization',
            status=status,
            details={'database': database},
        )


# Global audit logger instance for convenient import
audit = AuditLogger()
