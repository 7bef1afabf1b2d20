"""
FreeSWITCH CDR forwarder.

Listens for CHANNEL_HANGUP_COMPLETE events, rebuilds the call flow from
the XML CDR, transcodes the call's recordings and posts everything to a
webhook.
"""

__version__ = "1.0.0"
