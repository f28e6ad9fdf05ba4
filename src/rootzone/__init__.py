"""
Root zone index.

Reads a root zone file (full IANA root.zone or a named.root hints file) and
exposes the root servers with their glue addresses, plus any TLD delegations
the file carries.

Public entrypoint: load()
"""

from .index import ZoneIndex, load, parse
from .models import RootServerRecord, ServerIdentity, ZoneDelegation

__all__ = ["ZoneIndex", "load", "parse", "RootServerRecord", "ServerIdentity", "ZoneDelegation"]
