import logging
import time
from collections import defaultdict
from contextlib import contextmanager
from datetime import datetime
from http import HTTPStatus
from typing import Generator

import requests
from requests.auth import AuthBase

from datasync_api.config.sections import Source
from datasync_api.errors import (
    AuthError,
    FetchError,
    MalformedPageError,
    TransientFetchError,
)
from datasync_api.records import Page
from datasync_api.secret import Secret
from datasync_api.type_defs import Cursor, QueryParams, is_cursor, is_json_object
from datasync_api.utils.datetime import format_datetime

logger = logging.getLogger(__name__)

RESPONSE_PREVIEW_LIMIT = 200
TRANSIENT_REQUEST_ERRORS = (
    requests.Timeout,
    requests.ConnectionError,
    requests.exceptions.ChunkedEncodingError,
    requests.exceptions.ContentDecodingError,
)
TRANSIENT_STATUS_CODES = frozenset(
    {
        HTTPStatus.REQUEST_TIMEOUT.value,
        HTTPStatus.TOO_MANY_REQUESTS.value,
    }
)
AUTH_STATUS_CODES = frozenset({HTTPStatus.UNAUTHORIZED.value, HTTPStatus.FORBIDDEN.value})


def _preview_response_body(text: str | None) -> str:
    if not text:
        return ""
    compact = " ".join(text.split())
    if len(compact) <= RESPONSE_PREVIEW_LIMIT:
        return compact
    return f"{compact[:RESPONSE_PREVIEW_LIMIT]}..."


class BearerAuth(AuthBase):
    """Adds the bearer credential to each outgoing request."""

    def __init__(self, secret: Secret) -> None:
        self._secret = secret

    def __call__(self, request: requests.PreparedRequest) -> requests.PreparedRequest:
        request.headers["Authorization"] = f"Bearer {self._secret.reveal()}"
        return request

    def __repr__(self) -> str:
        return f"BearerAuth({self._secret!r})"


class SourceClient(requests.Session):
    def __init__(self, source: Source, secret: Secret | None = None) -> None:
        super().__init__()

        self.base_url = source.url.rstrip("/")
        self.page_size = source.page_size
        self.timeout = source.timeout
        self.records_key = source.records_key
        self.cursor_key = source.cursor_key
        self.updated_since_param = source.updated_since_param
        self.auth = BearerAuth(secret if secret is not None else source.secret)
        self.headers.update({"accept": "application/json"})

        self.api_call_counter: defaultdict[str, int] = defaultdict(int)
        self.api_call_duration: defaultdict[str, list[float]] = defaultdict(list)

    @contextmanager
    def time_api_call(self, label: str) -> Generator[None, None, None]:
        start_time = time.monotonic()
        try:
            yield
        finally:
            self.api_call_counter[label] += 1
            self.api_call_duration[label].append(time.monotonic() - start_time)

    def display_api_call_stats(self) -> None:
        logger.info("API Stats:")
        for label, count in sorted(self.api_call_counter.items()):
            durations = self.api_call_duration[label]
            average = sum(durations) / len(durations) if durations else 0.0
            logger.info("  %s: calls=%s avg_seconds=%.3f", label, count, average)

    def request(self, method: str, url: str, *args, **kwargs) -> requests.Response:
        kwargs.setdefault("timeout", self.timeout)
        try:
            with self.time_api_call(method.upper()):
                response = super().request(method, url, *args, **kwargs)
        except TRANSIENT_REQUEST_ERRORS as error:
            logger.warning("Request to %s failed: %s", url, type(error).__name__)
            raise TransientFetchError(f"{type(error).__name__} while requesting {url}") from error
        except requests.RequestException as error:
            raise FetchError(f"Request to {url} failed: {error}") from error

        status_code = response.status_code
        if status_code in AUTH_STATUS_CODES:
            logger.error("Received authorization error %s from source", status_code)
            raise AuthError(
                f"Source rejected the credential (HTTP {status_code})",
                status_code=status_code,
            )

        if status_code in TRANSIENT_STATUS_CODES or status_code >= HTTPStatus.INTERNAL_SERVER_ERROR.value:
            logger.warning("Source returned %s. Will retry...", status_code)
            raise TransientFetchError(
                f"Received retryable status code: {status_code}. "
                f"Response content: {_preview_response_body(response.text)}",
                status_code=status_code,
            )

        if status_code != HTTPStatus.OK.value:
            raise FetchError(
                f"Received unexpected status code: {status_code}. "
                f"Response content: {_preview_response_body(response.text)}",
                status_code=status_code,
            )

        return response

    def build_params(
        self, cursor: Cursor | None, updated_since: datetime | None = None
    ) -> QueryParams:
        params: QueryParams = {"page_size": self.page_size}
        if cursor is not None:
            params["cursor"] = cursor
        if updated_since is not None and self.updated_since_param:
            params[self.updated_since_param] = format_datetime(updated_since)
        return params

    def fetch_page(
        self, cursor: Cursor | None, *, updated_since: datetime | None = None
    ) -> Page:
        response = self.get(self.base_url, params=self.build_params(cursor, updated_since))
        try:
            body = response.json()
        except ValueError as error:
            raise MalformedPageError(
                f"Source returned a non-JSON body: {_preview_response_body(response.text)}"
            ) from error

        if not isinstance(body, dict):
            raise MalformedPageError(f"Expected a JSON object page, got {type(body).__name__}")

        records = body.get(self.records_key)
        if not isinstance(records, list):
            raise MalformedPageError(
                f"Page field {self.records_key!r} is missing or not a list"
            )
        if not all(is_json_object(record) for record in records):
            logger.debug("Page contains non-object records; they will fail normalization")

        next_cursor = body.get(self.cursor_key)
        if not is_cursor(next_cursor):
            raise MalformedPageError(
                f"Page field {self.cursor_key!r} must be a non-empty string or null, got {next_cursor!r}"
            )
        if next_cursor is not None and next_cursor == cursor:
            raise MalformedPageError(f"Source returned the request cursor {cursor!r} as next cursor")

        logger.debug(
            "Fetched %s records (cursor=%r next_cursor=%r)", len(records), cursor, next_cursor
        )
        return Page(records=records, next_cursor=next_cursor)
