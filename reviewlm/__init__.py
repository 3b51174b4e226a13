"""
reviewlm — Language-model response acquisition for an automated PR reviewer.

Turns a review prompt into either a strict JSON review payload (inline
comments) or a free-form discussion reply, across Anthropic and OpenAI
backends.
"""

from pathlib import Path
import tomllib
from importlib.metadata import version, PackageNotFoundError

def _resolve_version() -> str:
    """Resolve the reviewlm version.

    Priority:
    1) Local source checkout version from pyproject.toml (if present)
    2) Installed package metadata (reviewlm)
    3) Safe fallback
    """
    try:
        root = Path(__file__).resolve().parent.parent
        pyproject = root / "pyproject.toml"
        if pyproject.exists():
            data = tomllib.loads(pyproject.read_text(encoding="utf-8"))
            proj = data.get("project", {})
            ver = proj.get("version")
            if isinstance(ver, str) and ver.strip():
                return ver.strip()
    except (OSError, tomllib.TOMLDecodeError):
        pass

    try:
        return version("reviewlm")
    except PackageNotFoundError:
        return "0.0.0"


__version__ = _resolve_version()
