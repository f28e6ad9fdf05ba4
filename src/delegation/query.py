from __future__ import annotations

import logging
import time
from typing import Tuple, Union

import dns.exception
import dns.flags
import dns.message
import dns.query
import dns.rcode
import dns.rdatatype

logger = logging.getLogger(__name__)

RdataTypeLike = Union[dns.rdatatype.RdataType, str, int]


class QueryError(Exception):
    """A single query to a single server failed (timeout, network error, SERVFAIL, ...)."""

    def __init__(self, server: str, qname: str, rdtype: RdataTypeLike, reason: str) -> None:
        self.server = server
        self.qname = qname
        self.rdtype = dns.rdatatype.to_text(dns.rdatatype.RdataType.make(rdtype))
        self.reason = reason
        super().__init__(f"{qname}/{self.rdtype} @{server}: {reason}")


class DNSQuerier:
    """
    Non-recursive (RD=0) queries to one server address at a time.

    - UDP with EDNS(0); retried once without EDNS if the server returns FORMERR
    - TCP retry when the UDP answer is truncated
    - only NOERROR and NXDOMAIN count as answers, everything else raises QueryError
    """

    def __init__(
        self,
        timeout: float = 5.0,
        edns_payload: int = 1232,
        port: int = 53,
        tcp_fallback: bool = True,
    ) -> None:
        self.timeout = float(timeout)
        self.edns_payload = int(edns_payload)
        self.port = int(port)
        self.tcp_fallback = bool(tcp_fallback)

    def make_query(self, qname: str, rdtype: RdataTypeLike, *, use_edns: bool = True) -> dns.message.Message:
        m = dns.message.make_query(qname, rdtype)
        # Authoritative probing: do NOT request recursion.
        m.flags &= ~dns.flags.RD
        if use_edns:
            m.use_edns(edns=0, payload=self.edns_payload)
        return m

    def query(self, address: str, qname: str, rdtype: RdataTypeLike) -> dns.message.Message:
        response = self._send(address, qname, rdtype)
        rcode = response.rcode()
        if rcode not in (dns.rcode.NOERROR, dns.rcode.NXDOMAIN):
            raise QueryError(address, qname, rdtype, dns.rcode.to_text(rcode))
        return response

    def timed_query(self, address: str, qname: str, rdtype: RdataTypeLike) -> Tuple[dns.message.Message, float]:
        """query() plus the elapsed wall time in milliseconds."""
        started = time.perf_counter()
        response = self.query(address, qname, rdtype)
        return response, (time.perf_counter() - started) * 1000.0

    def _send(self, address: str, qname: str, rdtype: RdataTypeLike) -> dns.message.Message:
        q = self.make_query(qname, rdtype)
        try:
            try:
                r = dns.query.udp(q, address, timeout=self.timeout, port=self.port, ignore_unexpected=True)
            except dns.exception.FormError:
                # Broken servers that choke on EDNS: retry without EDNS once.
                logger.debug("FORMERR from %s for %s, retrying without EDNS", address, qname)
                q = self.make_query(qname, rdtype, use_edns=False)
                r = dns.query.udp(q, address, timeout=self.timeout, port=self.port, ignore_unexpected=True)

            if self.tcp_fallback and r.flags & dns.flags.TC:
                logger.debug("truncated UDP answer from %s for %s, retrying over TCP", address, qname)
                r = dns.query.tcp(q, address, timeout=self.timeout, port=self.port)
        except dns.exception.Timeout as e:
            raise QueryError(address, qname, rdtype, "TIMEOUT") from e
        except Exception as e:
            # Includes EOFError when a TCP server closes the stream early.
            raise QueryError(address, qname, rdtype, f"{type(e).__name__}: {e}") from e
        return r
