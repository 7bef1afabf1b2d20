# =====================================================================
# Webhook Delivery Functions
# =====================================================================

import json
import logging
from contextlib import ExitStack
from typing import Any, Dict, List, Optional

import requests
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from cdrhook.cdr import CallRecord
from cdrhook.config import logger
from cdrhook.errors import DeliveryError
from cdrhook.recordings import RecordingArtifact

CONTENT_TYPE = "audio/mp3"


class WebhookClient:
    """
    Posts call records to the configured webhook.

    A record is sent as multipart/form-data: the JSON record in the
    `data` field and one `recordingN` file field per MP3. Anything with a
    requests-style post() can be given as session; by default each call
    uses a fresh connection from requests.post.
    """

    def __init__(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        retries: int = 20,
        retry_max_wait: float = 60.0,
        retry_multiplier: float = 1.0,
        session: Optional[Any] = None,
    ):
        self.url = url
        self.headers = dict(headers or {})
        self.retries = retries
        self.retry_max_wait = retry_max_wait
        self.retry_multiplier = retry_multiplier
        self.session = session or requests

    def _post_once(self, record: CallRecord, recordings: List[RecordingArtifact]) -> requests.Response:
        # Form field without a filename; keeps the body multipart even with no recordings
        files = {"data": (None, json.dumps(record.to_dict()), "application/json")}

        # Files are reopened on every attempt so a retry sends the whole body
        with ExitStack() as stack:
            for idx, artifact in enumerate(recordings, start=1):
                handle = stack.enter_context(open(artifact.output, "rb"))
                files[f"recording{idx}"] = (artifact.name, handle, CONTENT_TYPE)

            try:
                response = self.session.post(self.url, files=files, headers=self.headers)
            except requests.RequestException as e:
                raise DeliveryError(f"Webhook request failed: {e}") from e

        if not 200 <= response.status_code < 300:
            raise DeliveryError(
                f"Webhook answered {response.status_code} for call {record.uuid}"
            )
        return response

    def deliver(self, record: CallRecord, recordings: List[RecordingArtifact]) -> requests.Response:
        """
        Send one call record, retrying on any failure.

        Makes one attempt plus `retries` more; raises DeliveryError once
        they are all used up.
        """
        retrying = Retrying(
            stop=stop_after_attempt(self.retries + 1),
            wait=wait_exponential(multiplier=self.retry_multiplier, max=self.retry_max_wait),
            retry=retry_if_exception_type(DeliveryError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

        logger.info(
            f"Delivering call {record.uuid} with {len(recordings)} recording(s) to {self.url}"
        )
        response = retrying(self._post_once, record, recordings)
        logger.info(f"Call {record.uuid} delivered ({response.status_code})")
        return response
