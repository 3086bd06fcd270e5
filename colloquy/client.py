"""
colloquy.client — Async Facade with Hooks and Authorization
===========================================================

:class:`Comments` wraps every service operation for ``asyncio`` hosts.
Each call runs the synchronous service on a worker thread via
:func:`~colloquy.database.engine.run_db`, so one call is still one
transaction.

Two optional collaborators plug in here:

``callbacks``
    :class:`CommentCallbacks` with ``on_new_message`` (once per
    successful ``add_comment``) and ``on_mention`` (once per mention, in
    body order, after ``on_new_message``).  Delivery itself (push, email,
    webhooks) is the host's business.

``authorize``
    ``async (AuthOperation) -> user_id``.  When set, mutating calls act
    as the returned identity, ignoring any identity argument.  Read
    calls treat a :class:`~colloquy.errors.PermissionDeniedError` as an
    anonymous viewer instead of failing.

Usage::

    comments = Comments(engine, config, callbacks=CommentCallbacks(on_mention=notify))
    zone_id = await comments.get_or_create_zone("doc_123")
    thread_id = await comments.add_thread(zone_id)
    await comments.add_comment(thread_id, "Hi @bob", author_id="alice")
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import Engine

from colloquy.config import ColloquyConfig
from colloquy.database.engine import run_db
from colloquy.engine.pagination import ORDER_ASC
from colloquy.engine.results import (
    AddCommentResult,
    Attachment,
    CascadeResult,
    EditResult,
    MentionEvent,
    MessagePage,
    MessageWithReactions,
    NewMessageEvent,
    Position,
    ReactionSummary,
    ThreadPage,
    ThreadRecord,
    ToggleResult,
    TypingUser,
    ZoneRecord,
)
from colloquy.errors import ErrorCode, PermissionDeniedError
from colloquy.services import (
    message_service,
    reaction_service,
    thread_service,
    typing_service,
    zone_service,
)
from colloquy.services.sweeper import TypingSweeper

logger = logging.getLogger(__name__)

OP_READ = "read"
OP_CREATE = "create"
OP_UPDATE = "update"
OP_DELETE = "delete"
OP_REACT = "react"


@dataclass(frozen=True, slots=True)
class AuthOperation:
    """Descriptor handed to the ``authorize`` hook."""

    type: str
    zone_id: int | None = None
    thread_id: int | None = None
    message_id: int | None = None


@dataclass(slots=True)
class CommentCallbacks:
    on_new_message: Callable[[NewMessageEvent], Awaitable[None]] | None = None
    on_mention: Callable[[MentionEvent], Awaitable[None]] | None = None


AuthorizeFn = Callable[[AuthOperation], Awaitable[str]]


class Comments:
    """Async entry point to the comment engine."""

    def __init__(
        self,
        engine: Engine,
        config: ColloquyConfig | None = None,
        callbacks: CommentCallbacks | None = None,
        authorize: AuthorizeFn | None = None,
        sweeper: TypingSweeper | None = None,
    ) -> None:
        self.engine = engine
        self.config = config or ColloquyConfig()
        self.callbacks = callbacks or CommentCallbacks()
        self.authorize = authorize
        self.sweeper = sweeper

    # ---- Identity ---------------------------------------------------------

    async def _actor(self, op: AuthOperation, supplied: str | None) -> str:
        """Identity for a mutation that needs one."""
        if self.authorize is not None:
            return await self.authorize(op)
        if supplied is None:
            raise PermissionDeniedError(
                ErrorCode.E_UNAUTHENTICATED, f"{op.type} requires a user id"
            )
        return supplied

    async def _owner_check(self, op: AuthOperation, supplied: str | None) -> str | None:
        """Identity for edit/delete, where the ownership check is optional."""
        if self.authorize is not None:
            return await self.authorize(op)
        return supplied

    async def _gate(self, op: AuthOperation) -> None:
        """Run the hook for mutations that carry no identity."""
        if self.authorize is not None:
            await self.authorize(op)

    async def _viewer(self, op: AuthOperation, supplied: str | None) -> str | None:
        if self.authorize is None:
            return supplied
        try:
            return await self.authorize(op)
        except PermissionDeniedError:
            return None

    # ---- Zones ------------------------------------------------------------

    async def get_or_create_zone(self, entity_id: str, metadata: object = None) -> int:
        await self._gate(AuthOperation(OP_CREATE))
        return await run_db(zone_service.get_or_create_zone, self.engine, entity_id, metadata)

    async def get_zone(self, entity_id: str) -> ZoneRecord | None:
        await self._viewer(AuthOperation(OP_READ), None)
        return await run_db(zone_service.get_zone, self.engine, entity_id)

    async def get_zone_by_id(self, zone_id: int) -> ZoneRecord | None:
        await self._viewer(AuthOperation(OP_READ, zone_id=zone_id), None)
        return await run_db(zone_service.get_zone_by_id, self.engine, zone_id)

    async def list_zones(self, limit: int | None = None) -> list[ZoneRecord]:
        await self._viewer(AuthOperation(OP_READ), None)
        return await run_db(
            zone_service.list_zones, self.engine, limit or self.config.zone_list_limit
        )

    async def update_zone_metadata(self, zone_id: int, metadata: object) -> None:
        await self._gate(AuthOperation(OP_UPDATE, zone_id=zone_id))
        await run_db(zone_service.update_zone_metadata, self.engine, zone_id, metadata)

    async def delete_zone(self, zone_id: int) -> CascadeResult:
        await self._gate(AuthOperation(OP_DELETE, zone_id=zone_id))
        return await run_db(zone_service.delete_zone, self.engine, zone_id)

    # ---- Threads ----------------------------------------------------------

    async def add_thread(
        self, zone_id: int, position: Position | dict | None = None, metadata: object = None
    ) -> int:
        await self._gate(AuthOperation(OP_CREATE, zone_id=zone_id))
        return await run_db(
            thread_service.create_thread, self.engine, zone_id, position, metadata
        )

    async def get_thread(self, thread_id: int) -> ThreadRecord | None:
        await self._viewer(AuthOperation(OP_READ, thread_id=thread_id), None)
        return await run_db(thread_service.get_thread, self.engine, thread_id)

    async def get_threads(
        self,
        zone_id: int,
        limit: int | None = None,
        include_resolved: bool = True,
        cursor: str | None = None,
    ) -> ThreadPage:
        await self._viewer(AuthOperation(OP_READ, zone_id=zone_id), None)
        return await run_db(
            thread_service.list_threads,
            self.engine,
            zone_id,
            limit,
            include_resolved,
            cursor,
            default_limit=self.config.default_page_limit,
            max_limit=self.config.max_page_limit,
        )

    async def resolve_thread(self, thread_id: int, user_id: str | None = None) -> None:
        actor = await self._actor(AuthOperation(OP_UPDATE, thread_id=thread_id), user_id)
        await run_db(thread_service.resolve_thread, self.engine, thread_id, actor)

    async def unresolve_thread(self, thread_id: int) -> None:
        await self._gate(AuthOperation(OP_UPDATE, thread_id=thread_id))
        await run_db(thread_service.unresolve_thread, self.engine, thread_id)

    async def update_thread_position(
        self, thread_id: int, position: Position | dict | None
    ) -> None:
        await self._gate(AuthOperation(OP_UPDATE, thread_id=thread_id))
        await run_db(thread_service.update_thread_position, self.engine, thread_id, position)

    async def delete_thread(self, thread_id: int) -> CascadeResult:
        await self._gate(AuthOperation(OP_DELETE, thread_id=thread_id))
        return await run_db(thread_service.delete_thread, self.engine, thread_id)

    # ---- Messages ---------------------------------------------------------

    async def add_comment(
        self,
        thread_id: int,
        body: str,
        author_id: str | None = None,
        attachments: Iterable[Attachment | dict] | None = None,
    ) -> AddCommentResult:
        """Post a message, then fire ``on_new_message`` and one ``on_mention`` per mention."""
        author = await self._actor(AuthOperation(OP_CREATE, thread_id=thread_id), author_id)
        result = await run_db(
            message_service.add_comment, self.engine, thread_id, author, body,
            list(attachments) if attachments else None,
        )

        if self.callbacks.on_new_message is not None:
            await self.callbacks.on_new_message(
                NewMessageEvent(
                    message_id=result.message_id,
                    thread_id=thread_id,
                    author_id=author,
                    body=body,
                    mentions=list(result.mentions),
                )
            )
        if self.callbacks.on_mention is not None and result.mentions:
            logger.debug(
                "Dispatching %d mention hooks for message %d",
                len(result.mentions), result.message_id,
            )
            for mention in result.mentions:
                await self.callbacks.on_mention(
                    MentionEvent(
                        message_id=result.message_id,
                        mentioned_user_id=mention.user_id,
                        author_id=author,
                        body=body,
                    )
                )
        return result

    async def get_message(
        self, message_id: int, current_user_id: str | None = None
    ) -> MessageWithReactions | None:
        viewer = await self._viewer(AuthOperation(OP_READ, message_id=message_id), current_user_id)
        return await run_db(message_service.get_message, self.engine, message_id, viewer)

    async def get_messages(
        self,
        thread_id: int,
        limit: int | None = None,
        cursor: str | None = None,
        order: str = ORDER_ASC,
        current_user_id: str | None = None,
        include_deleted: bool = False,
    ) -> MessagePage:
        viewer = await self._viewer(AuthOperation(OP_READ, thread_id=thread_id), current_user_id)
        return await run_db(
            message_service.list_messages,
            self.engine,
            thread_id,
            limit,
            cursor,
            order,
            viewer,
            include_deleted,
            default_limit=self.config.default_page_limit,
            max_limit=self.config.max_page_limit,
        )

    async def edit_message(
        self, message_id: int, body: str, author_id: str | None = None
    ) -> EditResult:
        author = await self._owner_check(
            AuthOperation(OP_UPDATE, message_id=message_id), author_id
        )
        return await run_db(message_service.edit_message, self.engine, message_id, body, author)

    async def delete_message(self, message_id: int, author_id: str | None = None) -> None:
        """Soft-delete (mask) a message."""
        author = await self._owner_check(
            AuthOperation(OP_DELETE, message_id=message_id), author_id
        )
        await run_db(
            message_service.soft_delete_message,
            self.engine,
            message_id,
            author,
            placeholder=self.config.deleted_placeholder,
        )

    async def permanently_delete_message(self, message_id: int) -> None:
        await self._gate(AuthOperation(OP_DELETE, message_id=message_id))
        await run_db(message_service.permanently_delete_message, self.engine, message_id)

    async def resolve_message(self, message_id: int, user_id: str | None = None) -> None:
        actor = await self._actor(AuthOperation(OP_UPDATE, message_id=message_id), user_id)
        await run_db(message_service.resolve_message, self.engine, message_id, actor)

    async def unresolve_message(self, message_id: int) -> None:
        await self._gate(AuthOperation(OP_UPDATE, message_id=message_id))
        await run_db(message_service.unresolve_message, self.engine, message_id)

    # ---- Reactions --------------------------------------------------------

    async def add_reaction(
        self, message_id: int, emoji: str, user_id: str | None = None
    ) -> int | None:
        actor = await self._actor(AuthOperation(OP_REACT, message_id=message_id), user_id)
        return await run_db(reaction_service.add_reaction, self.engine, message_id, actor, emoji)

    async def remove_reaction(
        self, message_id: int, emoji: str, user_id: str | None = None
    ) -> bool:
        actor = await self._actor(AuthOperation(OP_REACT, message_id=message_id), user_id)
        return await run_db(
            reaction_service.remove_reaction, self.engine, message_id, actor, emoji
        )

    async def toggle_reaction(
        self, message_id: int, emoji: str, user_id: str | None = None
    ) -> ToggleResult:
        actor = await self._actor(AuthOperation(OP_REACT, message_id=message_id), user_id)
        return await run_db(
            reaction_service.toggle_reaction, self.engine, message_id, actor, emoji
        )

    async def get_reactions(
        self, message_id: int, current_user_id: str | None = None
    ) -> list[ReactionSummary]:
        viewer = await self._viewer(AuthOperation(OP_READ, message_id=message_id), current_user_id)
        return await run_db(reaction_service.get_reactions, self.engine, message_id, viewer)

    async def get_reaction_users(self, message_id: int, emoji: str) -> list[str]:
        await self._viewer(AuthOperation(OP_READ, message_id=message_id), None)
        return await run_db(reaction_service.get_reaction_users, self.engine, message_id, emoji)

    # ---- Typing -----------------------------------------------------------

    async def set_typing(
        self, thread_id: int, is_typing: bool, user_id: str | None = None
    ) -> datetime | None:
        """Start or stop typing.  Starting arms a sweep at ``TTL + buffer``."""
        actor = await self._actor(AuthOperation(OP_CREATE, thread_id=thread_id), user_id)
        expires_at = await run_db(
            typing_service.set_typing,
            self.engine,
            thread_id,
            actor,
            is_typing,
            ttl_seconds=self.config.typing_ttl_seconds,
        )
        if is_typing and self.sweeper is not None:
            self.sweeper.arm(
                self.config.typing_ttl_seconds + self.config.typing_sweep_buffer_seconds
            )
        return expires_at

    async def get_typing_users(
        self, thread_id: int, exclude_user_id: str | None = None
    ) -> list[TypingUser]:
        """Who is typing.  With a hook, the caller is left out unless an exclusion is given."""
        viewer = await self._viewer(AuthOperation(OP_READ, thread_id=thread_id), None)
        if exclude_user_id is None:
            exclude_user_id = viewer
        return await run_db(
            typing_service.get_typing_users, self.engine, thread_id, exclude_user_id
        )

    async def clear_user_typing(self, user_id: str) -> int:
        await self._gate(AuthOperation(OP_DELETE))
        return await run_db(typing_service.clear_user_typing, self.engine, user_id)
