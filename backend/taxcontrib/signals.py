# Overview: Session-change notifications for subscribers (audit log, caches).

"""
Session lifecycle signals.

Emitted by session_service whenever a session is created, revoked or
refreshed. Receivers get the user id as sender and keyword arguments:

    event:      "SIGNED_IN" | "SIGNED_OUT" | "TOKEN_REFRESHED"
    session:    the SessionToken row
    ip_address: client address when known
"""

from blinker import Namespace

_signals = Namespace()

session_changed = _signals.signal("session-changed")
