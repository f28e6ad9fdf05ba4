class Recommendations:
    _MAP = {
        "OK": "No action needed.",

        # Nameserver axis
        "ResolveNsNotMatch": (
            "The authoritative servers publish a different NS set than expected. Check the delegation "
            "at the registrar and the NS records in the zone; an unexpected nameserver can mean a "
            "hijacked or expired domain, or a migration that was not recorded in the domain list."
        ),

        # Address axis
        "ResolveIpNotMatch": (
            "The authoritative servers return different A/AAAA records than expected. Confirm the "
            "records in the zone; if the change was intended, update the expected ip list."
        ),

        # Reachability
        "ResolutionFailed": (
            "No authoritative answer could be obtained. Check that the delegation exists, that the "
            "nameservers are reachable over UDP/TCP 53, and that they answer authoritatively (AA=1)."
        ),
    }

    @classmethod
    def recommend(cls, flag: str) -> str:
        key = getattr(flag, "value", flag)
        return cls._MAP.get(key, "Review the domain's delegation and authoritative records.")
