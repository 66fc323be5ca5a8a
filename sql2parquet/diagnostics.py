# ==============================================
# Diagnostics
# ==============================================
#
# PURPOSE:
#   Collect the non-fatal warnings raised during schema inference
#   and sink setup. Components take a Diagnostics instead of
#   printing, so tests can inspect exactly what was reported.
#
# CLASS: Diagnostics
# ------------------
#   - warn(warning: InferenceWarning) -> None
#       Record the warning and log it at WARNING level.
#   - warnings -> list[InferenceWarning]
#   - of_type(cls) -> list[InferenceWarning]
#   - clear() -> None
#
# ==============================================

import logging
from typing import List, Type

from sql2parquet.errors import InferenceWarning

logger = logging.getLogger(__name__)


class Diagnostics:
    """In-memory warning sink that also forwards to logging."""

    def __init__(self, log: logging.Logger = None):
        self._log = log or logger
        self._warnings: List[InferenceWarning] = []

    def warn(self, warning: InferenceWarning) -> None:
        self._warnings.append(warning)
        self._log.warning("%s", warning)

    @property
    def warnings(self) -> List[InferenceWarning]:
        return list(self._warnings)

    def of_type(self, warning_type: Type[InferenceWarning]) -> List[InferenceWarning]:
        return [w for w in self._warnings if isinstance(w, warning_type)]

    def clear(self) -> None:
        self._warnings = []

    def __len__(self) -> int:
        return len(self._warnings)
