"""Tenant isolation guard.

Every selector and service takes a ``TenantScope`` as its first argument.
There is no ambient tenant state: the scope is threaded through each call.

Rules:
- Reads are filtered to the scope's organization and, unless the scope is
  elevated, to its branch (rows with a null branch are organization-wide).
  A single-row read of another organization's row raises NotFound.
- Writes against a row of another organization, or of another branch for a
  non-elevated scope, raise Forbidden and are logged on the security logger.
- Organization-wide rows (null branch) are writable by elevated scopes only.
- Elevated scopes skip the branch filter, never the organization filter.

Models opt in by using ``TenantManager`` and declaring ``TENANT_PATH``, the
lookup prefix that reaches the row carrying ``organization`` and ``branch``
(``''`` for the row itself, ``'booking__'`` for booking lines).
"""

import logging
from dataclasses import dataclass
from typing import Any

from django.core.exceptions import FieldDoesNotExist
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import models
from django.db.models import Q

from .conf import get_elevated_roles
from .exceptions import Forbidden, NotFound


security_logger = logging.getLogger('django_freight.security')


@dataclass(frozen=True)
class TenantScope:
    """An authenticated caller's authorized scope.

    Supplied by the identity layer; this package only authorizes against it.

    Attributes:
        organization_id: The caller's organization
        branch_id: The caller's branch (None only for elevated callers)
        role: Caller role; roles in FREIGHT_ELEVATED_ROLES see every branch
        actor: Identity stamped on custody events (loaded_by, delivered_by...)
    """

    organization_id: Any
    branch_id: Any = None
    role: str = 'staff'
    actor: str = ''

    def __post_init__(self):
        if self.organization_id is None:
            raise Forbidden("Tenant scope requires an organization")
        if self.branch_id is None and not self.all_branches:
            raise Forbidden("Non-elevated tenant scope requires a branch")

    @property
    def all_branches(self) -> bool:
        return self.role in get_elevated_roles()

    def covers(self, organization_id, branch_id=None) -> bool:
        """Check whether a row's (organization, branch) lies inside this scope."""
        if str(organization_id) != str(self.organization_id):
            return False
        if self.all_branches or branch_id is None:
            return True
        return str(branch_id) == str(self.branch_id)

    def __str__(self):
        branch = 'all branches' if self.all_branches else f"branch:{self.branch_id}"
        return f"org:{self.organization_id} ({branch}, role={self.role})"


class TenantQuerySet(models.QuerySet):
    """QuerySet with an explicit scope filter."""

    def visible_to(self, scope: TenantScope):
        """Filter to rows the scope may read."""
        if scope is None:
            raise Forbidden("Unscoped query")
        path = getattr(self.model, 'TENANT_PATH', '')
        qs = self.filter(**{f"{path}organization_id": scope.organization_id})
        if scope.all_branches or not _has_branch(self.model, path):
            return qs
        branch_q = Q(**{f"{path}branch_id": scope.branch_id})
        if _branch_nullable(self.model, path):
            branch_q |= Q(**{f"{path}branch__isnull": True})
        return qs.filter(branch_q)


class SoftDeleteManager(models.Manager):
    """Manager that excludes soft-deleted objects by default.

    Use .with_deleted() to include soft-deleted objects.
    Use .deleted_only() to get only soft-deleted objects.
    """

    def get_queryset(self):
        return super().get_queryset().filter(deleted_at__isnull=True)

    def with_deleted(self):
        return super().get_queryset()

    def deleted_only(self):
        return super().get_queryset().filter(deleted_at__isnull=False)


class TenantManager(SoftDeleteManager.from_queryset(TenantQuerySet)):
    """Soft-delete aware manager exposing ``visible_to(scope)``."""
    pass


def _tenant_model(model, path: str):
    """Follow TENANT_PATH to the model carrying organization/branch."""
    for part in filter(None, path.split('__')):
        model = model._meta.get_field(part).related_model
    return model


def _has_branch(model, path: str) -> bool:
    try:
        _tenant_model(model, path)._meta.get_field('branch')
    except FieldDoesNotExist:
        return False
    return True


def _branch_nullable(model, path: str) -> bool:
    return _tenant_model(model, path)._meta.get_field('branch').null


def tenant_of(obj) -> tuple[Any, Any]:
    """Return the (organization_id, branch_id) a row belongs to."""
    path = getattr(type(obj), 'TENANT_PATH', '')
    holder = obj
    for part in filter(None, path.split('__')):
        holder = getattr(holder, part)
    return holder.organization_id, getattr(holder, 'branch_id', None)


def guard_read(scope: TenantScope, obj, entity: str = None):
    """Authorize reading a single row.

    A row of another organization is reported as NotFound so that its
    existence does not leak; a row of another branch raises Forbidden.
    """
    if scope is None:
        raise Forbidden("Unscoped read")
    organization_id, branch_id = tenant_of(obj)
    entity = entity or type(obj).__name__
    if str(organization_id) != str(scope.organization_id):
        raise NotFound(entity, obj.pk)
    if not scope.covers(organization_id, branch_id):
        _deny(scope, obj, 'read')
    return obj


def guard_write(scope: TenantScope, obj):
    """Authorize mutating a single row, raising Forbidden on mismatch.

    A row with a null branch belongs to the whole organization and only an
    elevated scope may change it.
    """
    if scope is None:
        raise Forbidden("Unscoped write")
    organization_id, branch_id = tenant_of(obj)
    if not scope.covers(organization_id, branch_id):
        _deny(scope, obj, 'write')
    if (branch_id is None and not scope.all_branches
            and _has_branch(type(obj), getattr(type(obj), 'TENANT_PATH', ''))):
        _deny(scope, obj, 'write')
    return obj


def guard_organization(scope: TenantScope, obj, entity: str = None):
    """Authorize referencing an organization-level row (article, branch, customer)."""
    organization_id, _ = tenant_of(obj)
    if str(organization_id) != str(scope.organization_id):
        raise NotFound(entity or type(obj).__name__, obj.pk)
    return obj


def guard_branch(scope: TenantScope, branch):
    """Authorize acting on behalf of a branch (booking origin, manifest dispatch)."""
    guard_organization(scope, branch, 'Branch')
    if not scope.covers(branch.organization_id, branch.pk):
        _deny(scope, branch, 'act')
    return branch


def _fetch(model, ref, entity: str):
    if isinstance(ref, model):
        if ref.deleted_at is not None:
            raise NotFound(entity, ref.pk)
        return ref
    try:
        obj = model.objects.filter(pk=ref).first()
    except (ValueError, DjangoValidationError):
        obj = None
    if obj is None:
        raise NotFound(entity, ref)
    return obj


def get_scoped(scope: TenantScope, model, ref, entity: str = None, for_write: bool = False):
    """Load a row by instance or primary key and authorize access to it.

    Raises:
        NotFound: Missing, soft-deleted, or (for reads) owned by another organization
        Forbidden: Owned by a branch outside a non-elevated scope, or (for
            writes) by another organization
    """
    entity = entity or model.__name__
    obj = _fetch(model, ref, entity)
    if for_write:
        return guard_write(scope, obj)
    return guard_read(scope, obj, entity)


def get_reference(scope: TenantScope, model, ref, entity: str = None):
    """Load an organization-level row (article, branch, customer) for referencing."""
    entity = entity or model.__name__
    if scope is None:
        raise Forbidden("Unscoped read")
    return guard_organization(scope, _fetch(model, ref, entity), entity)


def _deny(scope: TenantScope, obj, action: str):
    security_logger.warning(
        f"Forbidden {action} on {type(obj).__name__} {obj.pk} by {scope.actor or 'unknown'} "
        f"scoped to {scope}"
    )
    raise Forbidden(f"{type(obj).__name__} '{obj.pk}' is outside of tenant scope")
