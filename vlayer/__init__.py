"""
vlayer - HIPAA Compliance Scanner for Source Code

Scans a source tree for regulatory compliance issues:
- PHI exposure in code, logs and URLs
- Weak or missing encryption
- Missing audit logging
- Access-control and API security gaps
- Data retention problems

and reduces the findings to a single deterministic compliance score.

Licensed under the Apache License 2.0
"""

__version__ = "1.0.0"
__author__ = "vlayer contributors"


__all__ = [
    "__version__",
]
