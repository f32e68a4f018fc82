import os
from dataclasses import dataclass, field
from typing import List, Optional


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


def _env_timeout(name: str) -> Optional[float]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError:
        return None
    return value if value > 0 else None


@dataclass
class Settings:
    npm_bin: str = "npm"
    omit: List[str] = field(default_factory=lambda: ["dev"])
    install_modules: bool = False
    timeout: Optional[float] = None
    temp_root: Optional[str] = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the environment (call after load_dotenv)."""
        omit_raw = os.getenv("NPM_AUDIT_OMIT", "dev")
        return cls(
            npm_bin=os.getenv("NPM_AUDIT_NPM_BIN", "npm"),
            omit=[o.strip() for o in omit_raw.split(",") if o.strip()],
            install_modules=_env_flag("NPM_AUDIT_INSTALL_MODULES"),
            timeout=_env_timeout("NPM_AUDIT_TIMEOUT"),
            temp_root=os.getenv("NPM_AUDIT_TEMP_ROOT") or None,
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
