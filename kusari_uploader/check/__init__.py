"""
Blocked-package checks for uploaded SBOMs.
"""

from .blocked_packages import BlockedPackageChecker, check_blocked_packages, report_blocked

__all__ = [
    'BlockedPackageChecker',
    'check_blocked_packages',
    'report_blocked'
]
