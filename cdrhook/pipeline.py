# =====================================================================
# Hangup Event Processing
# =====================================================================

from typing import Optional

from cdrhook.cdr import CallRecord, build_call_record
from cdrhook.config import Settings, logger
from cdrhook.delivery import WebhookClient
from cdrhook.errors import CdrHookError, DeliveryError
from cdrhook.recordings import collect_recordings, delete_files


class CallPipeline:
    """
    Turns one CHANNEL_HANGUP_COMPLETE event into one webhook delivery.

    Steps run strictly in order: reconstruct the call, collect and
    transcode recordings, deliver, then remove scratch files.
    """

    def __init__(self, settings: Settings, client: Optional[WebhookClient] = None):
        self.settings = settings
        self.client = client or WebhookClient(
            settings.webhook_url,
            headers=settings.webhook_headers,
            retries=settings.delivery_retries,
            retry_max_wait=settings.delivery_retry_max_wait,
        )

    def process(self, call_uuid: str, body: str) -> Optional[CallRecord]:
        """
        Run the pipeline and let errors propagate.

        Returns the delivered record, or None when the call was too
        short to forward.
        """
        record = build_call_record(
            call_uuid,
            body,
            prefix=self.settings.tech_prefix,
            region=self.settings.phone_region,
            min_duration=self.settings.min_call_duration,
        )
        if record is None:
            return None

        recordings = collect_recordings(
            call_uuid,
            self.settings.recordings_dir,
            grace_period=self.settings.recording_grace_period,
            ffmpeg_path=self.settings.ffmpeg_path,
        )
        record.recordings = [artifact.name for artifact in recordings]

        scratch = [path for artifact in recordings for path in artifact.paths]
        try:
            self.client.deliver(record, recordings)
        except DeliveryError:
            # Left in place so the call can be redelivered by hand
            if scratch:
                logger.error(
                    f"Keeping scratch files for undelivered call {call_uuid}: "
                    + ", ".join(str(p) for p in scratch)
                )
            raise

        delete_files(scratch)
        return record

    def handle_event(self, call_uuid: Optional[str], body: Optional[str]) -> None:
        """
        Process one hangup event, never raising.

        Any failure is logged and only drops this event.
        """
        if not body:
            return
        if not call_uuid:
            logger.warning("Hangup event without Channel-Call-UUID, ignoring")
            return

        logger.info(f"Processing hangup of call {call_uuid}")
        try:
            self.process(call_uuid, body)
        except CdrHookError as e:
            logger.error(f"Dropping call {call_uuid}: {e}", exc_info=True)
        except Exception:
            logger.exception(f"Unexpected error processing call {call_uuid}")
        finally:
            logger.debug(f"Hangup handling complete for call {call_uuid}")
