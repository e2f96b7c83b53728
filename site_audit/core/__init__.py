"""
Core components for site audit.

Contains:
- Data models (CheckSpec, CheckResult, Report)
- Assertion variants
- Fetcher contract
- Exceptions
"""
