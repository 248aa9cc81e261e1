"""
WEBAUDIT - Web Security Posture Scanner

Inspects a single URL for TLS posture, security-header hygiene and HTTPS
redirection, optionally runs active probes (reflected marker, database error
disclosure, common port sweep) and condenses everything into a 0-100 score.

Copyright (c) 2025
Licensed under MIT License
"""

__version__ = "1.0.0"
__author__ = "WEBAUDIT Team"
__status__ = "Development"


class WebAuditError(Exception):
    """Base exception for all WEBAUDIT errors"""
    pass
