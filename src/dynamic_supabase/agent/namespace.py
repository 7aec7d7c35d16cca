# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Actor namespace: at most one live session actor per session id.

The namespace plays the hosting runtime. It creates actors on first use,
hands the same instance to every later request of that session, and is the
only place that destroys session state (``evict``).

Live actors are bounded by ``max_live_sessions``. When the bound is
exceeded the least recently used actor is unloaded from memory; its durable
state stays in the database and the next ``get`` rebuilds the actor from it.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import secrets
from collections import OrderedDict

from ..core.config import CoreSettings, get_config
from ..core.supabase import create_client
from .actor import SessionActor
from .state import SessionState, SessionStateStore, StateDatabase
from .tools import ClientFactory

logger = logging.getLogger(__name__)


class ActorNamespace:
    """Maps session ids to their ``SessionActor``."""

    def __init__(
        self,
        db: StateDatabase | None = None,
        settings: CoreSettings | None = None,
        client_factory: ClientFactory | None = None,
        max_live: int | None = None,
    ):
        self.settings = settings or get_config()
        self.db = db or StateDatabase(self.settings.state_db_path)
        self._client_factory = client_factory or functools.partial(
            create_client, timeout=self.settings.supabase_timeout
        )
        self.max_live = max_live if max_live is not None else self.settings.max_live_sessions
        # Oldest first; access moves a session to the end
        self._actors: OrderedDict[str, SessionActor] = OrderedDict()
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._actors)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._actors

    @staticmethod
    def new_session_id() -> str:
        """Allocate a fresh, unguessable session id."""
        return secrets.token_hex(32)

    def _initial_state(self) -> SessionState | None:
        settings = self.settings
        if not (settings.use_environment_defaults and settings.has_default_credentials):
            return None
        return SessionState(
            is_configured=True,
            endpoint_url=settings.supabase_url,
            anon_key=settings.supabase_anon_key,
            service_key=settings.supabase_service_role_key,
        )

    async def get(self, session_id: str) -> SessionActor:
        """Return the session's actor, creating and initializing it if needed."""
        actor = self._actors.get(session_id)
        if actor is not None:
            self._actors.move_to_end(session_id)
            return actor

        async with self._lock:
            actor = self._actors.get(session_id)
            if actor is None:
                actor = SessionActor(
                    session_id,
                    self.db,
                    initial_state=self._initial_state(),
                    client_factory=self._client_factory,
                    serialize_calls=self.settings.serialize_tool_calls,
                )
                actor.init()
                self._actors[session_id] = actor
                logger.debug(f"Created session actor {session_id} ({actor.status.value})")
                self._unload_if_needed()
            else:
                self._actors.move_to_end(session_id)
        return actor

    def _unload_if_needed(self) -> None:
        while len(self._actors) > self.max_live:
            session_id, _ = self._actors.popitem(last=False)
            logger.debug(f"Unloaded idle session actor {session_id}")

    async def evict(self, session_id: str) -> bool:
        """Drop the live actor and delete its durable state.

        Returns True if the session existed (live or persisted).
        """
        async with self._lock:
            actor = self._actors.pop(session_id, None)
            store = actor.store if actor is not None else SessionStateStore(self.db, session_id)
            existed = store.delete()
        if existed:
            logger.info(f"Evicted session {session_id}")
        return existed

    def close(self) -> None:
        """Forget live actors and close the state database."""
        self._actors.clear()
        self.db.close()
