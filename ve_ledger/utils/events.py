import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass(frozen=True)
class Event:
    contract: str
    name: str
    ts: int
    level: int
    fields: Dict[str, Any] = field(default_factory=dict)

    def __getitem__(self, key):
        return self.fields[key]


def log_event(logger: logging.Logger, event: str, **fields: Any) -> None:
    """Emit a single JSON line describing a contract event."""
    if not logger.isEnabledFor(logging.INFO):
        return
    payload = {"event": str(event)}
    payload.update(fields)
    logger.info(json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str))
