"""
Operational Scripts
Dry-run checks and single-transaction deployment
"""
