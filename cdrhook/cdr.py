# =====================================================================
# CDR Reconstruction Functions
# =====================================================================

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional
from xml.parsers.expat import ExpatError

import xmltodict

from cdrhook.config import logger
from cdrhook.errors import CdrError
from cdrhook.normalizer import Cleaned, UNDEFINED, clean_date, clean_phone, clean_text


def _to_json(value: Any) -> Any:
    if isinstance(value, datetime):
        # e.g. 2023-11-14T22:13:20.000Z
        return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return value


def _payload_dict(pairs: Dict[str, Any]) -> Dict[str, Any]:
    return {key: _to_json(value) for key, value in pairs.items() if value is not UNDEFINED}


@dataclass
class CallLeg:
    """One hop in the routing history of a call."""

    caller_name: Cleaned
    caller_number: Cleaned
    callee_name: Cleaned
    callee_number: Cleaned
    destination_number: Cleaned
    profile_time: Optional[datetime]
    hangup_time: Optional[datetime]

    def to_dict(self) -> Dict[str, Any]:
        return _payload_dict(
            {
                "callerName": self.caller_name,
                "callerNumber": self.caller_number,
                "calleeName": self.callee_name,
                "calleeNumber": self.callee_number,
                "destinationNumber": self.destination_number,
                "profileTime": self.profile_time,
                "hangupTime": self.hangup_time,
            }
        )


@dataclass
class CallRecord:
    """
    Everything delivered to the webhook for one completed call.

    call_flow is in chronological order, so the first leg describes the
    original caller and the last leg describes who finally answered.
    """

    uuid: str
    duration: int
    call_flow: List[CallLeg]
    phone_numbers: List[str]
    recordings: List[str] = field(default_factory=list)

    @property
    def first(self) -> CallLeg:
        return self.call_flow[0]

    @property
    def last(self) -> CallLeg:
        return self.call_flow[-1]

    @property
    def dialed_number(self) -> Cleaned:
        return self.first.destination_number

    @property
    def start_time(self) -> Optional[datetime]:
        return self.first.profile_time

    @property
    def end_time(self) -> Optional[datetime]:
        return self.last.hangup_time

    def to_dict(self) -> Dict[str, Any]:
        return _payload_dict(
            {
                "uuid": self.uuid,
                "callerName": self.first.caller_name,
                "callerNumber": self.first.caller_number,
                "calleeName": self.last.callee_name,
                "calleeNumber": self.last.callee_number,
                "destinationNumber": self.last.destination_number,
                "dialedNumber": self.dialed_number,
                "duration": self.duration,
                "phoneNumbers": list(self.phone_numbers),
                "recordings": list(self.recordings),
                "callFlow": [leg.to_dict() for leg in self.call_flow],
                "startTime": self.start_time,
                "endTime": self.end_time,
            }
        )


def _dig(tree: Any, path: str) -> Any:
    """Follow a dotted path through nested dicts, None when any step is missing."""
    for key in path.split("."):
        if not isinstance(tree, dict):
            return None
        tree = tree.get(key)
    return tree


def _empty_as_text(path, key, value):
    return key, "" if value is None else value


def parse_cdr(body: str) -> Dict[str, Any]:
    """
    Parse XML CDR text into nested dicts.

    Attributes are merged into their element and the root element is
    unwrapped, so `variables.duration` is addressed directly. Empty
    elements become empty strings.
    """
    try:
        document = xmltodict.parse(body, attr_prefix="", postprocessor=_empty_as_text)
    except ExpatError as e:
        raise CdrError(f"Malformed CDR XML: {e}") from e

    root = next(iter(document.values()), None)
    if not isinstance(root, dict):
        raise CdrError("CDR document has no content")
    return root


def read_duration(cdr: Dict[str, Any]) -> int:
    raw = _dig(cdr, "variables.duration")
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise CdrError(f"CDR has no usable duration: {raw!r}")


def build_leg(flow: Any, prefix: str = "", region: str = "US") -> CallLeg:
    """Extract one CallLeg from a <callflow> element."""
    if not isinstance(flow, dict):
        raise CdrError("callflow entry is empty")

    profile = flow.get("caller_profile")
    times = flow.get("times")
    if not isinstance(profile, dict) or not isinstance(times, dict):
        raise CdrError("callflow entry is missing caller_profile or times")

    # Originated legs carry the real caller under the origination profile
    caller_name = _dig(
        profile, "origination.origination_caller_profile.caller_id_name"
    ) or profile.get("caller_id_name")
    caller_number = _dig(
        profile, "origination.origination_caller_profile.caller_id_number"
    ) or profile.get("caller_id_number")

    return CallLeg(
        caller_name=clean_text(caller_name, prefix),
        caller_number=clean_phone(caller_number, prefix, region),
        callee_name=clean_text(profile.get("callee_id_name"), prefix),
        callee_number=clean_phone(profile.get("callee_id_number"), prefix, region),
        destination_number=clean_phone(profile.get("destination_number"), prefix, region),
        profile_time=clean_date(times.get("profile_created_time")),
        hangup_time=clean_date(times.get("hangup_time")),
    )


def collect_phone_numbers(call_flow: List[CallLeg]) -> List[str]:
    """
    Gather every number seen on the call, dialed number first.

    Keeps only non-empty strings, each once, in order of first appearance.
    """
    numbers = []
    if call_flow and call_flow[0].destination_number:
        numbers.append(call_flow[0].destination_number)

    for leg in call_flow:
        numbers.append(leg.caller_number)
        numbers.append(leg.callee_number)

    numbers = [n for n in numbers if isinstance(n, str) and len(n) > 0]
    return list(dict.fromkeys(numbers))


def build_call_record(
    call_uuid: str,
    body: str,
    prefix: str = "",
    region: str = "US",
    min_duration: int = 2,
) -> Optional[CallRecord]:
    """
    Reconstruct the call behind a hangup event.

    Returns None for calls not longer than min_duration seconds; those
    are not forwarded at all.
    """
    cdr = parse_cdr(body)
    duration = read_duration(cdr)

    if duration <= min_duration:
        logger.info(f"Skipping call {call_uuid}: duration {duration}s is too short")
        return None

    flows = cdr.get("callflow")
    if flows is None:
        raise CdrError("CDR has no callflow")
    if not isinstance(flows, list):
        flows = [flows]

    # The CDR lists the most recent leg first
    call_flow = [build_leg(flow, prefix, region) for flow in flows]
    call_flow.reverse()

    record = CallRecord(
        uuid=call_uuid,
        duration=duration,
        call_flow=call_flow,
        phone_numbers=collect_phone_numbers(call_flow),
    )
    logger.debug(f"Call {call_uuid} reconstructed with {len(call_flow)} leg(s)")
    return record
