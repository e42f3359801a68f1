"""
Tenant Scoping

Every query on tenant-owned data goes through these helpers. tenant_id
is a required keyword argument, never defaulted and never read from
client input: it comes from the verified access token.

Lookups by id distinguish two failures:
- the row doesn't exist -> 404
- the row exists but belongs to another tenant -> 403 (TENANT_MISMATCH)
"""
import logging
from typing import Callable, Optional, Type, TypeVar

from sqlalchemy.orm import Query, Session

from sigstudio.core.exceptions import NotFoundError, TenantIsolationError
from sigstudio.utils.logging import log_security_event

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT")


def ensure_tenant_access(
    token_tenant_id: str,
    resource_tenant_id: Optional[str],
    *,
    user_id: Optional[str] = None,
    resource: str = "resource",
) -> None:
    """
    Raise TenantIsolationError unless the resource belongs to the token's tenant.

    Called for path parameters and body fields that name a tenant or a
    tenant-owned row.
    """
    if resource_tenant_id != token_tenant_id:
        log_security_event(
            "tenant_isolation_violation",
            {
                "tenant_id": token_tenant_id,
                "user_id": user_id,
                "target_tenant_id": resource_tenant_id,
                "resource": resource,
            },
            logger,
        )
        raise TenantIsolationError()


def scoped(db: Session, model: Type[ModelT], *, tenant_id: str) -> Query:
    """Query for ``model`` restricted to one tenant's rows."""
    return db.query(model).filter(model.tenant_id == tenant_id)


def get_owned_or_404(
    db: Session,
    model: Type[ModelT],
    object_id: str,
    *,
    tenant_id: str,
    not_found: Callable[[str], NotFoundError],
    user_id: Optional[str] = None,
) -> ModelT:
    """
    Load ``model`` by primary key and check it belongs to ``tenant_id``.

    ``not_found`` builds the 404 error, e.g. TemplateNotFoundError.
    """
    obj = db.query(model).filter(model.id == object_id).first()
    if obj is None:
        raise not_found(object_id)
    ensure_tenant_access(
        tenant_id,
        _owner_tenant_id(obj),
        user_id=user_id,
        resource=f"{model.__tablename__}:{object_id}",
    )
    return obj


def _owner_tenant_id(obj) -> Optional[str]:
    # Tenant rows are their own owner; assignments inherit from their user
    if hasattr(obj, "tenant_id"):
        return obj.tenant_id
    if obj.__tablename__ == "tenants":
        return obj.id
    if getattr(obj, "user", None) is not None:
        return obj.user.tenant_id
    return None
