"""
Tagged result of a pipeline stage that may or may not take over a request.

    Outcome.handled()        the stage produced the response, stop here
    Outcome.not_handled()    fall through to the next stage
    Outcome.error(exc)       the stage failed; the orchestrator maps
                             exc.status_code to a response
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..errors import StaticServerError


class OutcomeKind(Enum):
    HANDLED = "handled"
    NOT_HANDLED = "not_handled"
    ERROR = "error"


@dataclass(frozen=True)
class Outcome:
    kind: OutcomeKind
    exception: Optional[StaticServerError] = None

    @classmethod
    def handled(cls) -> "Outcome":
        return cls(OutcomeKind.HANDLED)

    @classmethod
    def not_handled(cls) -> "Outcome":
        return cls(OutcomeKind.NOT_HANDLED)

    @classmethod
    def error(cls, exception: StaticServerError) -> "Outcome":
        return cls(OutcomeKind.ERROR, exception)

    @property
    def is_handled(self) -> bool:
        return self.kind is OutcomeKind.HANDLED

    @property
    def is_error(self) -> bool:
        return self.kind is OutcomeKind.ERROR
