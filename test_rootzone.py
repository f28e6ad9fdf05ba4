import pytest

from dns_audit.errors import ParseError
from rootzone import ServerIdentity, load, parse

# A slice of a real root zone: SOA, DNSSEC and TXT records must be ignored.
ROOT_ZONE = """\
$ORIGIN .
$TTL 86400
.                   86400   IN  SOA  a.root-servers.net. nstld.verisign-grs.com. 2024010100 1800 900 604800 86400
.                   518400  IN  NS   a.root-servers.net.
.                   518400  IN  NS   m.root-servers.net.
a.root-servers.net. 518400  IN  A    198.41.0.4
a.root-servers.net. 518400  IN  AAAA 2001:503:ba3e::2:30
m.root-servers.net. 518400  IN  A    202.12.27.33
com.                172800  IN  NS   a.gtld-servers.net.
com.                172800  IN  NS   b.gtld-servers.net.
com.                86400   IN  DS   19718 13 2 8ACBB0CD28F41250A80A491389424D341522D946B0DA0C0291F2D3D771D7805A
a.gtld-servers.net. 172800  IN  A    192.5.6.30
b.gtld-servers.net. 172800  IN  AAAA 2001:503:231d::2:30
example.            86400   IN  TXT  "not a delegation"
"""


def test_hints_file(hints_index):
    assert sorted(hints_index) == ["a.root-servers.net.", "b.root-servers.net."]

    a = hints_index["A.ROOT-SERVERS.NET"]
    assert a.ipv4 == frozenset({"198.41.0.4"})
    assert a.ipv6 == frozenset({"2001:503:ba3e::2:30"})
    assert hints_index["b.root-servers.net."].ipv6 == frozenset()


def test_identities_are_ordered_by_name_then_family(hints_index):
    assert hints_index.identities() == [
        ServerIdentity("a.root-servers.net.", "198.41.0.4"),
        ServerIdentity("a.root-servers.net.", "2001:503:ba3e::2:30"),
        ServerIdentity("b.root-servers.net.", "170.247.170.2"),
    ]
    assert hints_index.identities(("ipv4",)) == [
        ServerIdentity("a.root-servers.net.", "198.41.0.4"),
        ServerIdentity("b.root-servers.net.", "170.247.170.2"),
    ]


def test_full_zone_ignores_other_record_types():
    index = parse(ROOT_ZONE)

    assert sorted(index) == ["a.root-servers.net.", "m.root-servers.net."]
    assert set(index.delegations) == {"com."}

    com = index.delegations["com."]
    assert com.nameservers == ("a.gtld-servers.net.", "b.gtld-servers.net.")
    assert com.identities(("ipv4",)) == [ServerIdentity("a.gtld-servers.net.", "192.5.6.30")]
    assert len(com.identities()) == 2


def test_delegation_for_picks_covering_zone():
    index = parse(ROOT_ZONE)

    assert index.delegation_for("www.Example.COM").zone == "com."
    assert index.delegation_for("example.org") is None


def test_root_server_without_address_is_skipped():
    text = (
        ". 3600000 NS a.root-servers.net.\n"
        ". 3600000 NS z.root-servers.net.\n"
        "a.root-servers.net. 3600000 A 198.41.0.4\n"
    )
    index = parse(text)

    assert list(index) == ["a.root-servers.net."]


def test_no_ttl_directive_is_accepted():
    index = parse(". NS a.root-servers.net.\na.root-servers.net. A 198.41.0.4\n")

    assert len(index) == 1


def test_malformed_zone_raises_parse_error():
    with pytest.raises(ParseError):
        parse("this is not a zone file\n", source="broken.zone")


def test_zone_without_root_servers_raises_parse_error():
    with pytest.raises(ParseError, match="no root nameservers"):
        parse("com. 172800 NS a.gtld-servers.net.\na.gtld-servers.net. 172800 A 192.5.6.30\n")


def test_load_reads_file(hints_file):
    assert len(load(hints_file)) == 2


def test_load_missing_file_raises_os_error(tmp_path):
    with pytest.raises(OSError):
        load(tmp_path / "missing.zone")


def test_load_non_utf8_file_raises_parse_error(tmp_path):
    p = tmp_path / "root.zone"
    p.write_bytes(b". 3600000 NS a.root-servers.net.\n; \xff\xfe\n")

    with pytest.raises(ParseError, match="UTF-8"):
        load(p)
