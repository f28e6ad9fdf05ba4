# This is the analytics model.
# It summarizes audit passes and root server performance as data frames.

from typing import Dict, Iterable, List, Sequence
import pandas as pd

from audit.models import DomainResult
from rootperf.cache import ServerPerformance
from .recommendations import Recommendations


# Uses a data frame to build a summary of the results
class ReportAnalyzer:

    RESULT_COLUMNS = ["domain", "flag", "reason", "recommendation"]

    def results_frame(self, results: Sequence[DomainResult]) -> pd.DataFrame:
        """One row per (domain, flag); passing domains get a single OK row."""
        rows: List[Dict[str, str]] = []
        for r in results:
            if r.success:
                rows.append({"domain": r.domain_name, "flag": "OK", "reason": "",
                             "recommendation": Recommendations.recommend("OK")})
                continue
            for flag, reason in zip(r.flags, r.reasons):
                rows.append({
                    "domain": r.domain_name,
                    "flag": flag.value,
                    "reason": reason,
                    "recommendation": Recommendations.recommend(flag),
                })
        return pd.DataFrame(rows, columns=self.RESULT_COLUMNS)

    def analytics(self, df: pd.DataFrame) -> Dict[str, pd.DataFrame]:
        # Always return the same keys
        empty = {
            "counts_by_flag": pd.DataFrame(columns=["flag", "count"]),
            "failing_domains": pd.DataFrame(columns=["domain", "count", "flag_breakdown"]),
        }
        if df is None or df.empty:
            return empty

        broken = df[df["flag"] != "OK"].copy()
        if broken.empty:
            return empty

        counts_by_flag = (
            broken.groupby("flag")
                  .size()
                  .reset_index(name="count")
                  .sort_values(["count", "flag"], ascending=[False, True])
                  .reset_index(drop=True)
        )

        breakdown = (
            broken.groupby("domain", as_index=False)["flag"]
                  .agg(lambda s: "; ".join(s))
                  .rename(columns={"flag": "flag_breakdown"})
        )

        failing_domains = (
            broken.groupby("domain", as_index=False)
                  .size()
                  .rename(columns={"size": "count"})
                  .merge(breakdown, on="domain", how="left")
                  .sort_values(["count", "domain"], ascending=[False, True])
                  .reset_index(drop=True)
        )

        return {
            "counts_by_flag": counts_by_flag,
            "failing_domains": failing_domains,
        }

    def latency_frame(self, entries: Iterable[ServerPerformance]) -> pd.DataFrame:
        """Root server addresses ranked by measured latency; unreachable ones last."""
        rows = [e.to_dict() for e in entries]
        df = pd.DataFrame(rows, columns=["server_name", "address", "latency_ms", "measured_at"])
        if df.empty:
            return df
        return df.sort_values(["latency_ms", "server_name", "address"], na_position="last").reset_index(drop=True)
