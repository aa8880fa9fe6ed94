"""
Session Registry — in-memory index of active sessions.

Sessions are reachable by their own id and by the owning device id.
The registry is the source of truth for "is this session active": a
session is live exactly as long as it is registered here. It is only
touched from the event loop thread, so it needs no locking.
"""

from __future__ import annotations

from typing import Iterator

from livestylist.session.models import ActiveSession


class SessionRegistry:
    """Two maps kept in lockstep: session_id → session, device_id → session_id."""

    def __init__(self) -> None:
        self._sessions: dict[str, ActiveSession] = {}
        self._device_sessions: dict[str, str] = {}

    def add(self, session: ActiveSession) -> None:
        existing_id = self._device_sessions.get(session.device_id)
        if existing_id is not None and existing_id != session.session_id:
            raise ValueError(
                f"Device {session.device_id} already owns session {existing_id}"
            )
        self._sessions[session.session_id] = session
        self._device_sessions[session.device_id] = session.session_id

    def get(self, session_id: str) -> ActiveSession | None:
        return self._sessions.get(session_id)

    def get_by_device(self, device_id: str) -> ActiveSession | None:
        session_id = self._device_sessions.get(device_id)
        if session_id is None:
            return None
        return self._sessions.get(session_id)

    def remove(self, session_id: str) -> ActiveSession | None:
        """Unregister a session. Returns it, or None if it was already gone."""
        session = self._sessions.pop(session_id, None)
        if session is None:
            return None
        if self._device_sessions.get(session.device_id) == session_id:
            del self._device_sessions[session.device_id]
        return session

    def session_ids(self) -> list[str]:
        return list(self._sessions.keys())

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __iter__(self) -> Iterator[ActiveSession]:
        return iter(list(self._sessions.values()))

    def __len__(self) -> int:
        return len(self._sessions)
