from __future__ import annotations

from typing import Any, Dict, List


def _version(module) -> str:
    return str(getattr(module, "__version__", "unknown"))


def doctor_report() -> Dict[str, Any]:
    checks: List[Dict[str, Any]] = []

    # Core import
    try:
        import neut2rootracker  # noqa: F401
        checks.append({"name": "neut2rootracker import", "ok": True, "detail": "import ok"})
    except Exception as e:
        checks.append({"name": "neut2rootracker import", "ok": False, "detail": str(e)})

    # Required deps
    for name, label in (("numpy", "numpy"), ("awkward", "awkward (arrays)"),
                        ("uproot", "uproot (ROOT I/O)"), ("particle", "particle (pdg)")):
        try:
            module = __import__(name)
            checks.append({"name": label, "ok": True, "detail": f"installed {_version(module)}"})
        except Exception as e:
            checks.append({"name": label, "ok": False, "detail": f"missing (required): {e}"})

    # Optional deps
    try:
        import pyarrow
        checks.append({"name": "pyarrow (parquet)", "ok": True, "detail": f"installed {_version(pyarrow)}"})
    except Exception:
        checks.append({"name": "pyarrow (parquet)", "ok": True, "detail": "not installed (optional)"})

    ok_all = all(c["ok"] for c in checks)
    summary = "neut2rootracker doctor: OK" if ok_all else "neut2rootracker doctor: FAIL"

    return {"summary": summary, "checks": checks}
