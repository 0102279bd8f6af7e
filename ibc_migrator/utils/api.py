"""
REST utilities for talking to chain LCD endpoints
"""

import logging
import time
from typing import Any, Dict, Optional

import requests

from ibc_migrator.constants import HTTP_NOT_FOUND, HTTP_RATE_LIMIT, HTTP_SERVER_ERROR_MIN
from ibc_migrator.exceptions import APIError
from ibc_migrator.utils.logging import log_api_request, log_api_response, log_with_context


class LcdSession:
    """Thin ``requests`` session bound to one chain's LCD, with retry/backoff.

    Connection errors, timeouts, rate limits and 5xx responses are retried
    with exponential backoff. Other 4xx responses are returned to the caller
    through ``APIError`` immediately (or as ``None`` with ``allow_not_found``).
    """

    def __init__(
        self,
        base_url: str,
        chain: Optional[str] = None,
        max_retries: int = 3,
        retry_delay: float = 1,
        timeout: float = 10,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.chain = chain
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self.session = session or requests.Session()

    def get_json(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        allow_not_found: bool = False,
    ) -> Optional[Dict[str, Any]]:
        """GET ``path`` and decode the JSON body, retrying transient failures."""
        url = f"{self.base_url}{path}"
        max_delay = 60
        backoff_factor = 2.0
        log_kwargs = {"component": "http", "chain": self.chain}
        last_error = ""

        for attempt in range(self.max_retries + 1):
            log_api_request("GET", url, params, **log_kwargs)
            try:
                resp = self.session.get(url, params=params, timeout=self.timeout)
            except (requests.ConnectionError, requests.Timeout) as e:
                last_error = f"{type(e).__name__}: {e}"
            else:
                status = resp.status_code
                if status == HTTP_NOT_FOUND and allow_not_found:
                    log_api_response(status, url, None, **log_kwargs)
                    return None
                if status < 400:
                    data = resp.json()
                    log_api_response(status, url, data, **log_kwargs)
                    return data

                log_api_response(status, url, resp.text, **log_kwargs)
                if status != HTTP_RATE_LIMIT and status < HTTP_SERVER_ERROR_MIN:
                    log_with_context(
                        logging.WARNING,
                        f"Client error ({status}) not retried: {url}",
                        **log_kwargs,
                    )
                    raise APIError(f"GET {url} failed with {status}: {resp.text}")
                last_error = f"{status} {resp.reason}"

            log_with_context(
                logging.WARNING, f"Encountered {last_error} from {url}", **log_kwargs
            )
            if attempt < self.max_retries:
                sleep_time = min(
                    self.retry_delay * (backoff_factor**attempt), max_delay
                )
                log_with_context(
                    logging.INFO,
                    f"Retrying in {sleep_time:.1f} seconds...",
                    **log_kwargs,
                )
                time.sleep(sleep_time)

        log_with_context(
            logging.ERROR,
            f"Max retries reached. Last error: {last_error}",
            **log_kwargs,
        )
        raise APIError(f"GET {url} failed after {self.max_retries + 1} attempts: {last_error}")
