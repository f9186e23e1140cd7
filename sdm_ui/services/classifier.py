from __future__ import annotations

import logging
from typing import Sequence

from sdm_ui.services.errors import SdmError, SdmErrorCode

logger = logging.getLogger(__name__)

# First match wins, so keep the specific phrases above the generic ones.
ERROR_PATTERNS: tuple[tuple[str, SdmErrorCode], ...] = (
    ("You are not authenticated", SdmErrorCode.UNAUTHORIZED),
    ("Authentication required", SdmErrorCode.UNAUTHORIZED),
    ("Cannot find datasource named", SdmErrorCode.RESOURCE_NOT_FOUND),
    ("Resource not found", SdmErrorCode.RESOURCE_NOT_FOUND),
    ("access denied", SdmErrorCode.INVALID_CREDENTIALS),
    ("Invalid credentials", SdmErrorCode.INVALID_CREDENTIALS),
    ("Permission denied", SdmErrorCode.PERMISSION_DENIED),
    ("Connection refused", SdmErrorCode.CONNECTION_FAILED),
    ("Could not connect", SdmErrorCode.CONNECTION_FAILED),
    ("Timed out", SdmErrorCode.CONNECTION_FAILED),
)


def classify_error(
    output: str,
    error: Exception | None,
    *,
    patterns: Sequence[tuple[str, SdmErrorCode]] = ERROR_PATTERNS,
) -> SdmError | None:
    """Map the printed output of a failed sdm invocation onto an SdmError.

    Matching is a plain case-sensitive substring test against each pattern in
    order. Output that matches nothing is classified as UNKNOWN and keeps the
    raw text for diagnostics. A successful invocation (``error is None``) is
    never reclassified.
    """
    if error is None:
        return None

    for pattern, code in patterns:
        if pattern in output:
            logger.debug("Classified sdm output as %s via pattern=%r", code.value, pattern)
            return SdmError(code, output, error)

    logger.debug("No error pattern matched sdm output=%r", output)
    return SdmError(SdmErrorCode.UNKNOWN, output, error)
