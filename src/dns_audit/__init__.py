"""
DNS delegation audit.

Checks that domains resolve, starting from the root servers, to the
authoritative nameservers and addresses an operator expects.

Entry points:
  - dns_audit.cli:main   (command line)
  - dns_audit.app:app    (FastAPI)
"""

__version__ = "0.2.0"
