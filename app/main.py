import logging
import os
import time
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from app.logging_config import configure_logging
from app.zkpassport.api_models import ERROR_RECOVERABILITY, ErrorCode, ErrorDetail, VerifyRequest
from app.zkpassport.certificate import CscaTrustStore
from app.zkpassport.exceptions import VerifierError
from app.zkpassport.verify import PassportVerifier

configure_logging()
log = logging.getLogger("zkpassport")

app = FastAPI(title="Passport Disclosure Verifier", version="0.1.0")


_verifier: Optional[PassportVerifier] = None


def get_verifier() -> PassportVerifier:
    """Get or create the service verifier from configuration."""
    global _verifier
    if _verifier is None:
        from app.core.config import (
            CSCA_DEV_DIR,
            CSCA_DIR,
            VERIFIER_DEV_MODE,
            VERIFIER_REQUIREMENTS,
            VERIFIER_SCOPE,
        )
        trust_store = CscaTrustStore.from_directories(CSCA_DIR, CSCA_DEV_DIR)
        _verifier = PassportVerifier(
            scope=VERIFIER_SCOPE,
            requirements=VERIFIER_REQUIREMENTS,
            dev_mode=VERIFIER_DEV_MODE,
            trust_store=trust_store,
        )
        log.info(
            f"verifier ready: scope={VERIFIER_SCOPE!r} "
            f"requirements={len(_verifier.requirements)} csca_anchors={len(trust_store)} "
            f"dev_mode={VERIFIER_DEV_MODE}"
        )
    return _verifier


def to_error_detail(exc: Exception) -> ErrorDetail:
    """Convert domain exception to ErrorDetail for API response."""
    code = getattr(exc, "code", ErrorCode.INTERNAL_ERROR)
    message = getattr(exc, "message", str(exc))
    recoverable = ERROR_RECOVERABILITY.get(code, True)
    return ErrorDetail(code=code, message=message, recoverable=recoverable)


@app.get("/healthz")
def healthz():
    return {"ok": True}


@app.middleware("http")
async def req_log(request: Request, call_next):
    start = time.time()
    route = request.url.path
    remote = request.client.host if request.client else "-"
    resp = await call_next(request)
    duration_ms = int((time.time() - start) * 1000)
    log.info(f"request_complete status={resp.status_code} duration_ms={duration_ms}",
             extra={"request_id": "-", "route": route, "remote_addr": remote})
    return resp


@app.post("/verify")
async def verify(req: VerifyRequest, request: Request,
                 verifier: PassportVerifier = Depends(get_verifier)):
    remote = request.client.host if request.client else "-"
    try:
        report = await verifier.verify(req)
    except VerifierError as e:
        detail = to_error_detail(e)
        log.info(f"verify_rejected code={detail.code}",
                 extra={"route": "/verify", "remote_addr": remote})
        return JSONResponse(
            status_code=503 if detail.recoverable else 400,
            content=detail.model_dump(),
        )
    log.info("verify_called", extra={"route": "/verify", "remote_addr": remote})
    return JSONResponse(report.to_response().model_dump())


@app.get("/version")
def version():
    # GIT_SHA is injected at deploy time
    return {"git_sha": os.getenv("GIT_SHA", "unknown")}


@app.get("/admin")
def admin():
    """Return all configurable items for operator visibility.

    Gated by ADMIN_ENDPOINT_ENABLED (default true; disable in production).
    """
    from app.core.config import (
        ADMIN_ENDPOINT_ENABLED,
        CERT_CLOCK_SKEW_SECONDS,
        CSCA_DEV_DIR,
        CSCA_DIR,
        DEFAULT_RPC_URL,
        DEV_MODE_ENFORCE_VALIDITY,
        PASSPORT_ATTESTATION_ID,
        PUBKEY_WORD_COUNT,
        PUBKEY_WORD_SIZE_BITS,
        REQUIRE_TRUST_ANCHORS,
        REVEAL_BYTES_PER_WORD,
        REVEAL_PACKED_WORDS,
        SNARKJS_BIN,
        SNARKJS_TIMEOUT_SECONDS,
        VERIFIER_DEV_MODE,
        VERIFIER_REQUIREMENTS,
        VERIFIER_SCOPE,
        VKEY_DIR,
    )
    from app.zkpassport.signals import LAYOUTS

    if not ADMIN_ENDPOINT_ENABLED:
        return JSONResponse(
            status_code=404,
            content={"detail": "Admin endpoint disabled"}
        )

    return {
        "normative": {
            "attestation_id": PASSPORT_ATTESTATION_ID,
            "pubkey_word_size_bits": PUBKEY_WORD_SIZE_BITS,
            "pubkey_word_count": PUBKEY_WORD_COUNT,
            "reveal_packed_words": REVEAL_PACKED_WORDS,
            "reveal_bytes_per_word": REVEAL_BYTES_PER_WORD,
            "circuits": [
                {"circuit": c, "version": v, "arity": layout.arity}
                for (c, v), layout in sorted(LAYOUTS.items())
            ],
        },
        "configurable": {
            "cert_clock_skew_seconds": CERT_CLOCK_SKEW_SECONDS,
        },
        "policy": {
            "dev_mode_enforce_validity": DEV_MODE_ENFORCE_VALIDITY,
            "require_trust_anchors": REQUIRE_TRUST_ANCHORS,
        },
        "verifier": {
            "scope": VERIFIER_SCOPE,
            "requirements": [list(r) for r in VERIFIER_REQUIREMENTS],
            "dev_mode": VERIFIER_DEV_MODE,
            "rpc_url": DEFAULT_RPC_URL,
        },
        "operational": {
            "vkey_dir": str(VKEY_DIR),
            "csca_dir": CSCA_DIR,
            "csca_dev_dir": CSCA_DEV_DIR,
            "snarkjs_bin": SNARKJS_BIN,
            "snarkjs_timeout_seconds": SNARKJS_TIMEOUT_SECONDS,
            "admin_endpoint_enabled": ADMIN_ENDPOINT_ENABLED,
        },
        "environment": {
            "log_level": logging.getLogger().getEffectiveLevel(),
            "log_level_name": logging.getLevelName(logging.getLogger().getEffectiveLevel()),
        },
    }


LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


class LogLevelRequest(BaseModel):
    level: str


@app.post("/admin/log-level")
def set_log_level(req: LogLevelRequest):
    """Change log level at runtime (DEBUG, INFO, WARNING, ERROR, CRITICAL).

    Gated by ADMIN_ENDPOINT_ENABLED.
    """
    from app.core.config import ADMIN_ENDPOINT_ENABLED

    if not ADMIN_ENDPOINT_ENABLED:
        return JSONResponse(
            status_code=404,
            content={"detail": "Admin endpoint disabled"}
        )

    level = req.level.upper()
    if level not in LOG_LEVELS:
        return JSONResponse(
            status_code=400,
            content={"detail": f"Invalid log level. Must be one of: {list(LOG_LEVELS)}"}
        )

    # module loggers (app.zkpassport.*) inherit from root
    for name in ("", "zkpassport"):
        logging.getLogger(name).setLevel(LOG_LEVELS[level])
    log.info(f"log level set to {level}")

    return {"success": True, "log_level": level, "message": f"Log level set to {level}"}
