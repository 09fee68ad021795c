"""Runtime settings for notesbridge."""

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_ACCOUNT = "iCloud"
DEFAULT_SCRIPT_TIMEOUT = 10.0
# a request may run several scripts plus cleanup
REQUEST_TIMEOUT_FACTOR = 3
DEFAULT_RESULT_LIMIT = 100
DEFAULT_MAX_ATTACHMENT_SIZE = 10 * 1024 * 1024

ENV_ACCOUNT = "NOTESBRIDGE_ACCOUNT"
ENV_TIMEOUT = "NOTESBRIDGE_TIMEOUT"
ENV_SCRIPT_TIMEOUT = "NOTESBRIDGE_SCRIPT_TIMEOUT"
ENV_RESULT_LIMIT = "NOTESBRIDGE_RESULT_LIMIT"


@dataclass
class Settings:
    """
    configuration consumed by the notes service.

    Attributes:
        account: Notes account every script is scoped to
        script_timeout: seconds a single osascript call may run
        request_timeout: seconds a whole service call may take; defaults to
            three times the script timeout
        result_limit: maximum entries returned by list operations
        max_attachment_size: largest attachment file read, in bytes
    """

    account: str = DEFAULT_ACCOUNT
    script_timeout: float = DEFAULT_SCRIPT_TIMEOUT
    request_timeout: Optional[float] = None
    result_limit: int = DEFAULT_RESULT_LIMIT
    max_attachment_size: int = DEFAULT_MAX_ATTACHMENT_SIZE

    def __post_init__(self) -> None:
        if self.request_timeout is None:
            self.request_timeout = self.script_timeout * REQUEST_TIMEOUT_FACTOR

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        builds settings from environment variables.

        Invalid numeric values are ignored with a warning.

        Args:
            environ: environment mapping (defaults to os.environ)
        """
        env = os.environ if environ is None else environ
        script_timeout = _positive_int(env, ENV_SCRIPT_TIMEOUT)
        request_timeout = _positive_int(env, ENV_TIMEOUT)
        result_limit = _positive_int(env, ENV_RESULT_LIMIT)

        return cls(
            account=env.get(ENV_ACCOUNT) or DEFAULT_ACCOUNT,
            script_timeout=(
                float(script_timeout) if script_timeout else DEFAULT_SCRIPT_TIMEOUT
            ),
            request_timeout=float(request_timeout) if request_timeout else None,
            result_limit=result_limit or DEFAULT_RESULT_LIMIT,
        )


def _positive_int(env: Mapping[str, str], name: str) -> Optional[int]:
    raw = env.get(name)
    if not raw:
        return None
    try:
        value = int(raw)
    except ValueError:
        logger.warning("ignoring %s=%r: not an integer", name, raw)
        return None
    if value <= 0:
        logger.warning("ignoring %s=%r: must be positive", name, raw)
        return None
    return value
