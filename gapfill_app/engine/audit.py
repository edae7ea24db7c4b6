from datetime import datetime
import platform

def start_audit() -> list[str]:
    return [f"Session start: {datetime.now().isoformat()}",
            f"Platform: {platform.platform()}" ]

def log_step(audit: list[str], msg: str):
    audit.append(f"{datetime.now().isoformat(timespec='seconds')} {msg}")

def describe_parameters(parameters: dict) -> str:
    parts = []
    for key, value in sorted(parameters.items()):
        if isinstance(value, dict):
            inner = ", ".join(f"{k}={v}" for k, v in sorted(value.items()))
            parts.append(f"{key}=({inner})")
        else:
            parts.append(f"{key}={value}")
    return ", ".join(parts)
