"""
Resource scope filter.

The tenant constraint every data query of a request must carry. It is
derived once, from the resolved Identity, by TenantScopeMiddleware.
"""
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ScopeFilter:
    unrestricted: bool = False
    organization_id: Optional[str] = None
    customer_id: Optional[str] = None

    @classmethod
    def for_identity(cls, identity):
        """
        unrestricted for operational roles, otherwise the identity's
        organization, otherwise its legacy customer id. Anonymous requests
        get an empty filter that matches nothing.
        """
        if identity is None:
            return cls()
        if identity.is_operational:
            return cls(unrestricted=True)
        if identity.organization_id:
            return cls(organization_id=identity.organization_id)
        if identity.customer_id:
            return cls(customer_id=identity.customer_id)
        return cls()

    @property
    def is_empty(self):
        return not (self.unrestricted or self.organization_id or self.customer_id)

    def apply(self, queryset, organization_field='organization_id',
              customer_field='customer_id'):
        """Narrow a queryset to this scope."""
        if self.unrestricted:
            return queryset
        if self.organization_id:
            return queryset.filter(**{organization_field: self.organization_id})
        if self.customer_id and customer_field:
            return queryset.filter(**{customer_field: self.customer_id})
        return queryset.none()
