import io
import json

import pytest

from audit.models import AnomalyFlag, DomainResult
from dns_audit.config import AuditSettings
from dns_audit.errors import ConfigError, ParseError
from reporting.analytics import ReportAnalyzer
from reporting.assembler import Assemble
from reporting.targets import InvalidDomain, loads_specs, read_specs, require_domain
from rootperf import PerformanceCache
from rootzone import ServerIdentity

PASS = DomainResult("a.example", nameservers=["ns1.a.example."], ips=["192.0.2.1"])
FAIL = DomainResult(
    "b.example",
    success=False,
    reasons=["did not return the correct nameservers", "did not return the correct ips"],
    flags=[AnomalyFlag.RESOLVE_NS_NOT_MATCH, AnomalyFlag.RESOLVE_IP_NOT_MATCH],
)


# ----------------------------
# Domain list input
# ----------------------------
def test_loads_specs_distinguishes_null_from_empty():
    specs = loads_specs(json.dumps([
        {"domain_name": "Example.COM.", "ns": ["NS1.example.com"], "ip": None},
        {"domain_name": "example.org", "ns": [], "ip": ["2001:DB8::1"]},
    ]))

    assert specs[0].domain_name == "example.com"
    assert specs[0].expected_ns.values == frozenset({"ns1.example.com."})
    assert not specs[0].expected_ip.present
    assert specs[1].expected_ns.present and not specs[1].expected_ns.values
    assert specs[1].expected_ip.values == frozenset({"2001:db8::1"})


@pytest.mark.parametrize(
    "text",
    [
        '{"domain_name": "example.com"}',
        '[{"domain_name": "example.com", "ns": "ns1.example.com"}]',
        '[{"domain_name": "example.com", "ip": ["300.1.1.1"]}]',
        '["example.com"]',
        "[",
    ],
)
def test_malformed_domain_lists(text):
    with pytest.raises(ParseError):
        loads_specs(text)


def test_read_specs_from_stdin():
    specs = read_specs("-", stdin=io.StringIO('[{"domain_name": "example.com"}]'))

    assert [s.domain_name for s in specs] == ["example.com"]


def test_read_specs_non_utf8_file(tmp_path):
    p = tmp_path / "domains.json"
    p.write_bytes(b'[{"domain_name": "\xff\xfe"}]')

    with pytest.raises(ParseError, match="UTF-8"):
        read_specs(str(p))


def test_require_domain():
    assert require_domain(" WWW.Example.com. ") == "www.example.com"
    with pytest.raises(InvalidDomain):
        require_domain("bad_domain!.com")


# ----------------------------
# Result JSON
# ----------------------------
def test_build_filters_passing_domains():
    a = Assemble()

    assert [r["domain_name"] for r in a.build([PASS, FAIL])] == ["b.example"]
    assert [r["domain_name"] for r in a.build([PASS, FAIL], include_all=True)] == ["a.example", "b.example"]


def test_write_emits_one_json_array_per_call():
    out = io.StringIO()

    Assemble().write(out, [FAIL])

    body = json.loads(out.getvalue())
    assert body[0]["flags"] == ["ResolveNsNotMatch", "ResolveIpNotMatch"]
    assert out.getvalue().endswith("\n")


def test_summarize():
    assert Assemble().summarize([PASS, FAIL]) == {
        "domains": 2,
        "passed": 1,
        "failed": 1,
        "flags": {"ResolveNsNotMatch": 1, "ResolveIpNotMatch": 1},
    }


# ----------------------------
# Analytics
# ----------------------------
def test_analytics_counts_flags():
    analyzer = ReportAnalyzer()

    a = analyzer.analytics(analyzer.results_frame([PASS, FAIL]))

    assert set(a["counts_by_flag"]["flag"]) == {"ResolveNsNotMatch", "ResolveIpNotMatch"}
    assert a["failing_domains"].iloc[0]["domain"] == "b.example"
    assert a["failing_domains"].iloc[0]["count"] == 2


def test_analytics_of_clean_pass_is_empty():
    analyzer = ReportAnalyzer()

    a = analyzer.analytics(analyzer.results_frame([PASS]))

    assert a["counts_by_flag"].empty
    assert a["failing_domains"].empty


def test_latency_frame_puts_unreachable_last():
    cache = PerformanceCache()
    cache.record(ServerIdentity("a.root-servers.net.", "198.41.0.4"), None)
    cache.record(ServerIdentity("b.root-servers.net.", "170.247.170.2"), 9.0)

    df = ReportAnalyzer().latency_frame(cache.entries())

    assert list(df["server_name"]) == ["b.root-servers.net.", "a.root-servers.net."]


# ----------------------------
# Settings
# ----------------------------
def test_settings_from_env():
    s = AuditSettings.from_env({
        "DNS_AUDIT_ROOT_ZONE": "/etc/root.zone",
        "DNS_AUDIT_CACHE": "/var/cache/roots.json",
        "DNS_AUDIT_THREADS": "8",
        "DNS_AUDIT_IPV6": "no",
    })

    assert s.root_zone == "/etc/root.zone"
    assert s.cache_in == s.cache_out == "/var/cache/roots.json"
    assert s.threads == 8
    assert s.timeout == 5.0
    assert s.families() == ("ipv4",)


@pytest.mark.parametrize("env", [{"DNS_AUDIT_TIMEOUT": "soon"}, {"DNS_AUDIT_THREADS": "0"}])
def test_invalid_settings(env):
    with pytest.raises(ConfigError):
        AuditSettings.from_env(env)
