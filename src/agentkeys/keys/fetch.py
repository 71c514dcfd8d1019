# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/agentkeys/keys/fetch.py

from __future__ import annotations

import logging
from typing import Optional

import requests

from agentkeys.utils.retry import RetryError, retry
from .errors import FetchError

log = logging.getLogger("agentkeys")

_TRANSIENT = (requests.ConnectionError, requests.Timeout)


class KeyFetcher:
    """
    Downloads key sources over HTTP(S).

    Connection errors and timeouts are retried; HTTP error statuses are not.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        *,
        timeout: float = 30.0,
        retries: int = 3,
        delay: float = 2.0,
    ):
        self.session = session or requests.Session()
        self.timeout = timeout
        self.retries = retries
        self.delay = delay

    def _get(self, url: str) -> bytes:
        resp = self.session.get(url, timeout=self.timeout)
        resp.raise_for_status()
        return resp.content

    def fetch(self, url: str) -> bytes:
        def _log_retry(attempt: int, exc: Exception) -> None:
            log.warning("GET %s failed (attempt %d/%d): %s", url, attempt, self.retries, exc)

        get = retry(
            retries=self.retries,
            delay=self.delay,
            retry_on=_TRANSIENT,
            on_retry=_log_retry,
        )(self._get)

        try:
            data = get(url)
        except RetryError as exc:
            raise FetchError(f"could not download {url}: {exc.__cause__}") from exc
        except requests.RequestException as exc:
            raise FetchError(f"could not download {url}: {exc}") from exc

        log.debug("downloaded %d bytes from %s", len(data), url)
        return data
