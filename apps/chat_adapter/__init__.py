"""Chat adapter service.

The adapter sits between the webhook endpoint and the
:class:`~apps.orchestrator.RelayOrchestrator`: it normalises the raw update,
turns unusable input into a no-op and hands real messages to the
orchestrator.  Orchestrator failures propagate to the HTTP layer.
"""

from __future__ import annotations

from typing import Union

from apps.orchestrator import ProcessingResult, RelayOrchestrator
from lib.contracts.errors import MalformedInput
from lib.telemetry.logger import get_logger

from .service import parse_update

logger = get_logger(__name__)


class ChatAdapter:
    def __init__(self, orchestrator: RelayOrchestrator):
        self.orch = orchestrator

    def handle_update(self, body: Union[bytes, str, dict, None]) -> ProcessingResult:
        try:
            message = parse_update(body)
        except MalformedInput as exc:
            logger.warning("ignoring malformed update: %s", exc)
            message = None
        return self.orch.process_update(message)


__all__ = ["ChatAdapter", "parse_update"]
