from __future__ import annotations

import ipaddress

# Normalization shared by every component so that comparisons are stable:
#   - names: lowercase, fully qualified (trailing dot)
#   - addresses: ipaddress canonical text


def normalize_name(raw: str) -> str:
    s = (raw or "").strip().lower()
    if not s or s == ".":
        return "."
    return s.rstrip(".") + "."


def normalize_address(raw: str) -> str:
    """Canonical text form of an IPv4/IPv6 literal. Raises ValueError if invalid."""
    return ipaddress.ip_address((raw or "").strip()).compressed


def address_family(address: str) -> str:
    return "ipv6" if ipaddress.ip_address(address).version == 6 else "ipv4"
