from pathlib import Path


# --- Versions (core) ---
ENGINE_VERSION = "0.3.0"
PPS_VERSION = "1.2"
PROMPT_VERSION = "1.2"
OUTPUT_FORMAT = "prompt_result_v1.2"
OMS_VERSION = "oms_v1_0"

# --- Layer Versions ---
RESULT_VALIDATOR_VERSION = "result_validator_v1"
MERGE_ENGINE_VERSION = "merge_engine_v1"
CONSISTENCY_CHECKER_VERSION = "consistency_checker_v1"
TOKEN_HYGIENE_VERSION = "token_hygiene_v1"

# --- Gate semantics ---
GATE_NOT_APPLICABLE = "N/A"
GATE_STATUS_PASS = "pass"
GATE_STATUS_FAIL = "fail"
GATE_STATUS_NA = "na"
GATE_STATUSES = (GATE_STATUS_PASS, GATE_STATUS_FAIL, GATE_STATUS_NA)

# --- Envelope meta enumerations ---
DEPTH_MODES = ("MVP", "Full", "Blueprint")
OUTPUT_MODES = ("delta", "full")
CONTEXT_BLOCK_POLICY = "summary_only"
LARGE_ARTIFACT_POLICY = "appendix_only"

# --- Token hygiene ---
DEFAULT_APPENDIX_THRESHOLD_CHARS = 4000

# --- Fatal error codes ---
SHAPE_ERROR = "SHAPE_ERROR"
OUTPUT_FORMAT_ERROR = "OUTPUT_FORMAT_ERROR"
GATE_SEMANTIC_ERROR = "GATE_SEMANTIC_ERROR"
FREEZE_PINNING_ERROR = "FREEZE_PINNING_ERROR"
APPENDIX_COLLISION_ERROR = "APPENDIX_COLLISION_ERROR"

# --- Non-fatal warning codes ---
CONSISTENCY_WARNING = "CONSISTENCY_WARNING"
TOKEN_HYGIENE_WARNING = "TOKEN_HYGIENE_WARNING"
DUPLICATE_NOOP = "DUPLICATE_NOOP"
RESULT_WARNING = "RESULT_WARNING"

DUPLICATE_NOOP_MESSAGE = "Duplicate (prompt_id, run_id): no-op"

# --- Append-only log keys ---
STATE_LOG_KEYS = ("decision_log", "open_questions", "changelog", "change_requests")
CONTEXT_APPEND_ONLY_KEYS = ("decision_log", "open_questions", "changelog")

# --- Packaged data ---
ENGINE_DATA_DIR = Path(__file__).resolve().parent / "data"
