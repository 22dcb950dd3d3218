"""Optional diagnostics channel for placement runs.

Events always go to the module logger at DEBUG. When the caller passes an
``on_diagnostic`` callback it receives the same events as structured data.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DiagnosticEvent:
    stage: str
    message: str
    data: Dict[str, Any] = field(default_factory=dict)


DiagnosticSink = Callable[[DiagnosticEvent], None]


class Diagnostics:
    """Forwards events to logging and an optional sink."""

    def __init__(self, sink: Optional[DiagnosticSink] = None):
        self._sink = sink

    def emit(self, stage: str, message: str, **data: Any) -> None:
        logger.debug("[%s] %s %s", stage, message, data if data else "")
        if self._sink is not None:
            self._sink(DiagnosticEvent(stage=stage, message=message, data=data))


class DiagnosticRecorder:
    """Sink that keeps every event, handy for CLI reports and tests."""

    def __init__(self):
        self.events: List[DiagnosticEvent] = []

    def __call__(self, event: DiagnosticEvent) -> None:
        self.events.append(event)

    def stages(self) -> List[str]:
        return [e.stage for e in self.events]


NULL_DIAGNOSTICS = Diagnostics()
