"""
Tenant isolation: organizations, the request scope filter and the demo
write-path firewall.
"""
