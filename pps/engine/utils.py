import copy
import json
from typing import Any, Dict, List


def compact_json_dumps(obj: Any) -> str:
    # key order preserved
    return json.dumps(obj, separators=(",", ":"), ensure_ascii=False, default=str)


def clone_json(value: Any) -> Any:
    return copy.deepcopy(value)


def nonempty_str(value: Any) -> str | None:
    if isinstance(value, str):
        token = value.strip()
        if token != "":
            return token
    return None


def as_str(value: Any, default: str = "") -> str:
    return value if isinstance(value, str) else default


def as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def make_issue(code: str, message: str, path: str = "$") -> Dict[str, str]:
    return {
        "code": str(code),
        "message": str(message),
        "path": str(path),
    }


def add_issue(issues: List[Dict[str, str]], *, code: str, message: str, path: str = "$") -> None:
    issues.append(make_issue(code, message, path))


def issue_messages(issues: List[Dict[str, str]]) -> List[str]:
    return [str(issue.get("message") or "") for issue in issues if isinstance(issue, dict)]
