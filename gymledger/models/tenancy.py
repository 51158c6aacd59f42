"""Write-time tenant isolation.

Services check tenants explicitly before writing; this hook re-checks every
pending row at flush so no code path can persist a cross-gym reference.
"""
import logging

from sqlalchemy import event
from sqlalchemy.orm import Session

from gymledger.exceptions import TenantIsolationViolation

logger = logging.getLogger(__name__)


def ensure_same_tenant(gym_id, entity, *referenced):
    """
    Raise TenantIsolationViolation unless every row belongs to ``gym_id``

    Args:
        gym_id: acting tenant
        entity: label of the row being written, for the error message
        referenced: (label, row) pairs
    """
    for label, row in referenced:
        if row is not None and row.gym_id != gym_id:
            logger.error(f'Tenant isolation violation: gym {gym_id} {entity} -> {label} of another gym')
            raise TenantIsolationViolation(entity, label)


@event.listens_for(Session, 'before_flush')
def enforce_tenant_isolation(session, flush_context, instances):
    with session.no_autoflush:
        for obj in list(session.new) + list(session.dirty):
            references = getattr(obj, 'tenant_references', None)
            if references is None:
                continue
            for label, model, ref_id in references():
                if ref_id is None:
                    continue
                ref = session.get(model, ref_id)
                if ref is not None and ref.gym_id != obj.gym_id:
                    logger.error(
                        f'Tenant isolation violation at flush: gym {obj.gym_id} '
                        f'{obj.__class__.__name__} -> {label} of another gym'
                    )
                    raise TenantIsolationViolation(obj.__class__.__name__, label)
