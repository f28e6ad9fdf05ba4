import contextlib
import functools
import logging
import os
from typing import Any, Dict, List, Optional

# FastAPI creates the app object and defines the different routes
from fastapi import Body, Depends, FastAPI, HTTPException, Query
from fastapi.responses import JSONResponse

from audit.models import DomainSpec
from reporting.assembler import Assemble
from reporting.targets import parse_specs, require_domain

from .config import AuditSettings
from .engine import AuditEngine, build_engine
from .errors import ConfigError, ParseError
from .log import configure

"""
HTTP API for the DNS delegation audit. Same engine as the CLI, configured from
the environment (DNS_AUDIT_ROOT_ZONE, DNS_AUDIT_CACHE, ...).

Run with e.g.:  uvicorn dns_audit.app:app
"""

logger = logging.getLogger(__name__)


# Logging is set up when the server starts, not when the module is imported.
@contextlib.asynccontextmanager
async def lifespan(_app: FastAPI):
    configure(int(os.getenv("DNS_AUDIT_VERBOSE", "0") or 0))
    yield


app = FastAPI(title="DNS Delegation Audit", lifespan=lifespan)
assembler = Assemble()


# The engine is built (and the root servers probed) on first use, then shared.
@functools.lru_cache(maxsize=1)
def get_engine() -> AuditEngine:
    try:
        engine = build_engine(AuditSettings.from_env())
    except (ConfigError, ParseError, OSError) as e:
        logger.error("cannot start audit engine: %s", e)
        raise HTTPException(status_code=503, detail=f"audit engine unavailable: {e}")
    engine.probe()
    try:
        engine.save_cache()
    except OSError as e:
        logger.warning("could not write performance cache: %s", e)
    return engine


# Audit one domain
@app.get("/audit")
def audit_one(
    domain: str = Query(..., min_length=1, max_length=253),
    ns: Optional[List[str]] = Query(None),
    ip: Optional[List[str]] = Query(None),
    engine: AuditEngine = Depends(get_engine),
):
    # Validate + normalize input
    try:
        spec = DomainSpec.create(require_domain(domain), ns=ns, ip=ip)
    except ParseError as e:
        raise HTTPException(status_code=400, detail=str(e))

    result = engine.orchestrator.audit(spec)
    return JSONResponse(content=assembler.build([result], include_all=True)[0])


# Audit a domain list (same JSON shape as the CLI's -c file)
@app.post("/audit")
def audit_many(
    payload: List[Dict[str, Any]] = Body(...),
    include_all: bool = Query(False, alias="all"),
    engine: AuditEngine = Depends(get_engine),
):
    try:
        specs = parse_specs(payload)
    except ParseError as e:
        raise HTTPException(status_code=400, detail=str(e))

    results = engine.orchestrator.run_once(specs)
    return JSONResponse(
        content={
            "results": assembler.build(results, include_all=include_all),
            "summary": assembler.summarize(results),
        }
    )


# Root server performance, best first
@app.get("/root-servers")
def root_servers(engine: AuditEngine = Depends(get_engine)):
    return JSONResponse(content=[e.to_dict() for e in engine.cache.entries()])
