from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from pps.engine.config_v1 import configured_gate_catalog_v1, load_config_v1
from pps.engine.constants import ENGINE_VERSION, OMS_VERSION, OUTPUT_FORMAT, PPS_VERSION
from pps.engine.io_v1 import unwrap_prompt_result_v1
from pps.engine.layers.envelope_projector_v1 import envelope_from_state_v1
from pps.engine.layers.merge_engine_v1 import merge_v1
from pps.engine.validate_documents_v1 import validate_pps_envelope_v1, validate_prompt_result_v1


class DocumentRequest(BaseModel):
    document: Any = Field(..., description="Envelope or prompt result, already parsed from YAML/JSON")


class ValidationResponse(BaseModel):
    ok: bool
    errors: List[Dict[str, str]] = Field(default_factory=list)


class MergeRequest(BaseModel):
    envelope: Any
    result: Any
    applied_index: Optional[List[Dict[str, Any]]] = None
    appendix_threshold_chars: Optional[int] = Field(default=None, gt=0)


class MergeResponse(BaseModel):
    version: str
    status: str
    ok: bool
    state: Optional[Dict[str, Any]] = None
    applied_index: Optional[List[Dict[str, str]]] = None
    iteration_summary: Optional[Dict[str, Any]] = None
    errors: List[Dict[str, str]] = Field(default_factory=list)
    warnings: List[Dict[str, str]] = Field(default_factory=list)


class NextEnvelopeRequest(BaseModel):
    base: Dict[str, Any]
    state: Dict[str, Any]
    meta_overrides: Dict[str, Any]
    focus: Dict[str, Any] = Field(default_factory=dict)


CONFIG = load_config_v1()

app = FastAPI(title="PPS Merge Engine", version=ENGINE_VERSION)

if CONFIG.dev_cors:
    dev_ports = range(5173, 5181)
    allow_origins = [f"http://127.0.0.1:{port}" for port in dev_ports] + [
        f"http://localhost:{port}" for port in dev_ports
    ]
else:
    allow_origins = [
        "http://127.0.0.1:5173",
        "http://localhost:5173",
    ]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health():
    return {
        "ok": True,
        "engine_version": ENGINE_VERSION,
        "pps_version": PPS_VERSION,
        "oms_version": OMS_VERSION,
        "output_format": OUTPUT_FORMAT,
    }


@app.post("/validate/envelope", response_model=ValidationResponse)
def validate_envelope(req: DocumentRequest):
    return ValidationResponse(**validate_pps_envelope_v1(req.document))


@app.post("/validate/result", response_model=ValidationResponse)
def validate_result(req: DocumentRequest):
    return ValidationResponse(**validate_prompt_result_v1(unwrap_prompt_result_v1(req.document)))


@app.post("/merge", response_model=MergeResponse)
def merge(req: MergeRequest):
    threshold = req.appendix_threshold_chars if req.appendix_threshold_chars is not None else CONFIG.appendix_threshold_chars
    payload = merge_v1(
        req.envelope,
        req.result,
        req.applied_index,
        appendix_threshold_chars=threshold,
        catalog=configured_gate_catalog_v1(CONFIG),
    )
    return MergeResponse(**payload)


@app.post("/envelope/next")
def envelope_next(req: NextEnvelopeRequest):
    try:
        return envelope_from_state_v1(req.base, req.state, req.meta_overrides, req.focus)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
