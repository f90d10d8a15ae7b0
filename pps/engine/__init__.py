"""Engine package for the deterministic PPS merge pipeline modules."""

__all__ = [
    "config_v1",
    "constants",
    "documents_v1",
    "export_v1",
    "gate_catalog_v1",
    "generation_client_v1",
    "io_v1",
    "layers",
    "pipeline_runner_v1",
    "stubs_v1",
    "utils",
    "validate_documents_v1",
]
