"""
Shared fixtures: settings and builders for FreeSWITCH XML CDRs.
"""

import subprocess
from pathlib import Path

import pytest

from cdrhook.config import Settings

# 2023-11-14T22:13:20Z in CDR microseconds
BASE_TIME = 1700000000000000


@pytest.fixture
def settings(tmp_path):
    """Settings pointing at a temporary recordings directory, no waiting."""
    return Settings(
        webhook_url="https://hooks.example.com/calls",
        webhook_headers={"Authorization": "Bearer test"},
        recordings_dir=tmp_path,
        recording_grace_period=0,
        reconnect_delay=5.0,
    )


def make_leg(
    caller_number="2125551234",
    callee_number="3105555678",
    destination="3105555678",
    caller_name="Alice",
    callee_name="Bob",
    profile_created=BASE_TIME,
    hangup=BASE_TIME + 10000000,
    origination=None,
):
    """Build one <callflow> element."""
    origination_xml = ""
    if origination:
        origination_xml = (
            "<origination><origination_caller_profile>"
            f"<caller_id_name>{origination[0]}</caller_id_name>"
            f"<caller_id_number>{origination[1]}</caller_id_number>"
            "</origination_caller_profile></origination>"
        )
    return (
        '<callflow dialplan="XML" profile_index="1">'
        "<caller_profile>"
        f"<caller_id_name>{caller_name}</caller_id_name>"
        f"<caller_id_number>{caller_number}</caller_id_number>"
        f"<callee_id_name>{callee_name}</callee_id_name>"
        f"<callee_id_number>{callee_number}</callee_id_number>"
        f"<destination_number>{destination}</destination_number>"
        f"{origination_xml}"
        "</caller_profile>"
        "<times>"
        f"<profile_created_time>{profile_created}</profile_created_time>"
        f"<hangup_time>{hangup}</hangup_time>"
        "</times>"
        "</callflow>"
    )


def make_cdr(duration=10, legs=None):
    """Build a full <cdr> document; legs are given newest first."""
    if legs is None:
        legs = [make_leg()]
    return (
        '<?xml version="1.0"?>'
        '<cdr core-uuid="core-1">'
        "<variables>"
        f"<duration>{duration}</duration>"
        "</variables>"
        + "".join(legs)
        + "</cdr>"
    )


def fake_ffmpeg(cmd, **kwargs):
    """Stand-in for subprocess.run that writes the requested output file."""
    Path(cmd[-2]).write_bytes(b"ID3 fake mp3")
    return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")
