import json
import re
import sys
from typing import Any, List, Optional, TextIO

from audit.models import DomainSpec
from dns_audit.errors import ParseError

# Invalid user input base error
class InvalidTarget(ParseError):
    """Base error for invalid user input targets."""

# Invalid domain name
class InvalidDomain(InvalidTarget):
    """Raised when a target is not a valid domain/zone."""

# Normalize the user input by trimming white space and removing trailing dots and turning it into lower case.
def normalize_target(raw: str) -> str:
    return (raw or "").strip().rstrip(".").lower()

# Check to ensure the provided domain is a valid domain. Checks only format not existence
_LABEL = re.compile(r"^_?[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?$")
def is_domain(s: str) -> bool:
    if not s or len(s) > 253 or any(c.isspace() for c in s):
        return False

    labels = s.split(".")
    if any(label == "" or len(label) > 63 for label in labels):
        return False

    return all(_LABEL.match(label) for label in labels)

# normalizes text and checks to see if it is a domain
def require_domain(raw: str) -> str:
    s = normalize_target(raw)
    if not is_domain(s):
        raise InvalidDomain(f"invalid domain format: {raw!r}")
    return s

# An expectation axis: missing or null means "do not check", otherwise a list of strings
def _axis(entry: dict, key: str, domain: str) -> Optional[List[str]]:
    value = entry.get(key)
    if value is None:
        return None
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ParseError(f"{domain}: '{key}' must be a list of strings or null")
    return value


def parse_specs(raw: Any) -> List[DomainSpec]:
    """
    Turn decoded JSON into DomainSpecs.

    Expected shape:
      [{"domain_name": "example.com", "ns": ["ns1.example.com"] | null, "ip": ["192.0.2.1"] | null}, ...]

    Raises:
        ParseError: wrong shape, invalid domain name, or invalid IP literal.
    """
    if not isinstance(raw, list):
        raise ParseError("domain list must be a JSON array")

    specs: List[DomainSpec] = []
    for i, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise ParseError(f"entry {i} must be an object")
        if not isinstance(entry.get("domain_name"), str):
            raise ParseError(f"entry {i} is missing 'domain_name'")

        domain = require_domain(entry["domain_name"])
        specs.append(
            DomainSpec.create(
                domain_name=domain,
                ns=_axis(entry, "ns", domain),
                ip=_axis(entry, "ip", domain),
            )
        )
    return specs


def loads_specs(text: str, source: str = "<specs>") -> List[DomainSpec]:
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as e:
        raise ParseError(f"{source}: invalid JSON: {e}") from e
    return parse_specs(raw)


def read_specs(path: str, stdin: Optional[TextIO] = None) -> List[DomainSpec]:
    """Read a domain list from a file, or from stdin when path is "-"."""
    source = "<stdin>" if path == "-" else path
    try:
        if path == "-":
            text = (stdin or sys.stdin).read()
        else:
            with open(path, "r", encoding="utf-8") as fh:
                text = fh.read()
    except UnicodeDecodeError as e:
        raise ParseError(f"{source}: not a UTF-8 text file: {e}") from e
    return loads_specs(text, source=source)
