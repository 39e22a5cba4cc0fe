"""
RBAC (Role-Based Access Control) application.

Provides the access control layer with:
- A closed role/permission matrix and operational role overrides
- Session-based identity resolution on every request
- Module, organization and report gates
- Demo sandbox quotas and retention
"""
