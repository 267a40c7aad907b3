import logging
import re
from typing import Optional

import requests

logger = logging.getLogger(__name__)

_TOKEN_IN_URL = re.compile(r"/bot[^/\s]+")


def open_session(user_agent: Optional[str] = None) -> requests.Session:
    """Open a requests session for the Telegram Bot API.

    Parameters
    ----------
    user_agent : Optional[str]
        Value of the ``User-Agent`` header. Defaults to ``luckydraw``.

    Returns
    -------
    requests.Session
        A session with JSON ``Accept`` headers set.
    """
    session = requests.Session()
    session.headers.update(
        {"Accept": "application/json", "User-Agent": user_agent or "luckydraw"}
    )
    logger.debug("Bot API session opened")
    return session


def redact_token(text: str) -> str:
    """Replace the bot token embedded in Bot API URLs with ``***``.

    ``requests`` includes the full URL in its exception messages, and the
    Bot API puts the token in the path, so errors are passed through here
    before being logged or surfaced.
    """
    return _TOKEN_IN_URL.sub("/bot***", text)
