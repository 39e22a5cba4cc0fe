"""
Assessment cases: the tenant-owned reports produced in each module.
"""
