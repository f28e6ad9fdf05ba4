import json
from typing import Any, Dict, List, Sequence, TextIO
from fastapi.encoders import jsonable_encoder

from audit.models import DomainResult

class Assemble:
    """
    Shapes audit results into the result JSON shared by the CLI and the API.

    Design intent:
      - The orchestrator decides pass/fail; the assembler only formats
      - By default only failed domains are included (include_all adds passing ones)
      - Output order is the input order of the domain list
    """

    def build(self, results: Sequence[DomainResult], include_all: bool = False) -> List[Dict[str, Any]]:
        """
        Build the result list.

        Args:
            results: One DomainResult per audited domain, in input order.
            include_all: Also include domains that passed.

        Returns:
            A list containing only JSON-safe values (dict/list/str/bool).
        """
        selected = [r for r in results if include_all or not r.success]

        # Final safety pass: ensure *everything* in response is JSON-safe.
        return jsonable_encoder([self._to_json(r) for r in selected])

    def write(self, out: TextIO, results: Sequence[DomainResult], include_all: bool = False) -> None:
        """Write one JSON array (plus newline) and flush, so watch-mode readers see each pass."""
        out.write(json.dumps(self.build(results, include_all=include_all), indent=2))
        out.write("\n")
        out.flush()

    def _to_json(self, obj: Any) -> Any:
        """
        Convert a result into JSON-friendly structures.

        - If the object provides to_dict(), use it, but still run jsonable_encoder
          to handle nested non-JSON types (enums, sets, etc.).
        - Otherwise, encode the object directly.
        """
        if hasattr(obj, "to_dict"):
            return jsonable_encoder(obj.to_dict())
        return jsonable_encoder(obj)

    def summarize(self, results: Sequence[DomainResult]) -> Dict[str, Any]:
        """
        Build a small summary:
          - number of domains audited, passed and failed
          - counts per anomaly flag
        """
        counts: Dict[str, int] = {}
        for r in results:
            for f in r.flags:
                counts[f.value] = counts.get(f.value, 0) + 1

        failed = sum(1 for r in results if not r.success)
        return {"domains": len(results), "passed": len(results) - failed, "failed": failed, "flags": counts}
