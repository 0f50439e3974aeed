"""Turns chat commands and inline-button callbacks into goal store calls."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from savebot.bot import messages
from savebot.services.goal_errors import GoalError, PersistenceFailure
from savebot.services.goal_resolver import resolve_goal
from savebot.services.goals_service import ContributionResult, Goal, GoalStore

logger = logging.getLogger(__name__)

_COMMAND_RE = re.compile(r"^/(?P<command>[A-Za-z_]+)(?:@\w+)?(?:\s+(?P<args>.*))?$", re.DOTALL)
_SETGOAL_ARGS_RE = re.compile(r"^(?P<name>.+?)\s+(?P<amount>\d+(?:\.\d{1,2})?)$", re.DOTALL)
_ADD_ARGS_RE = re.compile(r"^(?P<amount>\d+(?:\.\d{1,2})?)(?:\s+(?P<name>.+))?$", re.DOTALL)

CALLBACK_PROGRESS = "goal"
CALLBACK_ADD = "add"
CALLBACK_DELETE = "del"
CALLBACK_DELETE_CONFIRM = "del_yes"
CALLBACK_CANCEL = "cancel"

# Telegram rejects inline buttons whose callback_data exceeds 64 bytes.
MAX_CALLBACK_DATA_BYTES = 64


@dataclass
class InlineButton:
    text: str
    callback_data: str


@dataclass
class BotReply:
    text: str
    buttons: list[list[InlineButton]] = field(default_factory=list)


def _fits(callback_data: str) -> bool:
    return len(callback_data.encode("utf-8")) <= MAX_CALLBACK_DATA_BYTES


def _row(*buttons: InlineButton) -> list[InlineButton]:
    return [button for button in buttons if _fits(button.callback_data)]


def _goal_buttons(goal: Goal) -> list[list[InlineButton]]:
    row = _row(
        InlineButton("📊 Progress", f"{CALLBACK_PROGRESS}:{goal.name}"),
        InlineButton("➕ Add", f"{CALLBACK_ADD}:{goal.name}"),
        InlineButton("🗑 Delete", f"{CALLBACK_DELETE}:{goal.name}"),
    )
    return [row] if row else []


def _goals_keyboard(goals: list[Goal]) -> list[list[InlineButton]]:
    rows = (
        _row(
            InlineButton(f"📊 {goal.name}", f"{CALLBACK_PROGRESS}:{goal.name}"),
            InlineButton("🗑", f"{CALLBACK_DELETE}:{goal.name}"),
        )
        for goal in goals
    )
    return [row for row in rows if row]


def _with_unsaved_warning(reply: BotReply, saved: bool) -> BotReply:
    if not saved:
        reply.text = f"{reply.text}\n\n{messages.UNSAVED_CHANGE_TEXT}"
    return reply


class CommandDispatcher:
    """
    Chat front end for one GoalStore.

    Text commands and button callbacks both call the store directly; neither
    path fabricates events for the other.
    """

    def __init__(self, store: GoalStore) -> None:
        self.store = store
        self._commands: dict[str, Callable[[str, str], BotReply]] = {
            "start": self._start,
            "help": self._help,
            "setgoal": self._set_goal,
            "add": self._add,
            "goals": self._list_goals,
            "progress": self._progress,
            "delete": self._delete,
        }
        self._callbacks: dict[str, Callable[[str, str], BotReply]] = {
            CALLBACK_PROGRESS: self._progress_callback,
            CALLBACK_ADD: self._add_callback,
            CALLBACK_DELETE: self._delete_callback,
            CALLBACK_DELETE_CONFIRM: self._delete_confirm_callback,
        }

    def handle_text(self, user_id: Any, text: str) -> BotReply | None:
        """Reply to one chat message; None when the message is not a command."""
        match = _COMMAND_RE.match((text or "").strip())
        if match is None:
            return None

        command = match.group("command").lower()
        args = (match.group("args") or "").strip()
        handler = self._commands.get(command)
        if handler is None:
            return BotReply(messages.UNKNOWN_COMMAND_TEXT)

        return self._guarded(handler, str(user_id), args)

    def handle_callback(self, user_id: Any, data: str) -> BotReply:
        """Reply to one inline-button press; `data` is `action` or `action:goal name`."""
        action, _, name = (data or "").partition(":")
        if action == CALLBACK_CANCEL:
            return BotReply(messages.DELETE_CANCELLED_TEXT)

        handler = self._callbacks.get(action)
        if handler is None or not name:
            logger.info("Ignoring unknown callback payload %r", data)
            return BotReply(messages.EXPIRED_BUTTON_TEXT)

        return self._guarded(handler, str(user_id), name)

    def _guarded(self, handler: Callable[[str, str], BotReply], user_id: str, args: str) -> BotReply:
        try:
            return handler(user_id, args)
        except GoalError as exc:
            logger.debug("Goal error for user %s: %s", user_id, exc)
            return BotReply(messages.error_text(exc))

    def _mutate(self, operation: Callable[..., Any], *args: Any) -> tuple[Any, bool]:
        """
        Run one store mutation and report whether it reached disk.

        A failed snapshot write leaves the change applied in memory, so the reply
        still describes it and adds a warning.
        """
        try:
            return operation(*args), True
        except PersistenceFailure as exc:
            if exc.result is None:
                raise
            return exc.result, False

    def _start(self, user_id: str, args: str) -> BotReply:
        return BotReply(messages.WELCOME_TEXT)

    def _help(self, user_id: str, args: str) -> BotReply:
        return BotReply(messages.HELP_TEXT)

    def _set_goal(self, user_id: str, args: str) -> BotReply:
        match = _SETGOAL_ARGS_RE.match(args)
        if match is None:
            return BotReply(messages.USAGE["setgoal"])

        goal, saved = self._mutate(
            self.store.create_goal, user_id, match.group("name"), Decimal(match.group("amount"))
        )
        return _with_unsaved_warning(BotReply(messages.goal_created(goal), _goal_buttons(goal)), saved)

    def _add(self, user_id: str, args: str) -> BotReply:
        match = _ADD_ARGS_RE.match(args)
        if match is None:
            return BotReply(messages.USAGE["add"])

        amount = Decimal(match.group("amount"))
        result, saved = self._mutate(self.store.contribute, user_id, amount, match.group("name"))
        return _with_unsaved_warning(self._contribution_reply(result, amount), saved)

    def _contribution_reply(self, result: ContributionResult, amount: Decimal) -> BotReply:
        goal = result.goal
        text = messages.contribution_added(goal, amount)

        if result.newly_reached:
            text = f"{text}\n{messages.goal_reached(goal)}"
        elif result.reached_target:
            text = f"{text}\n{messages.goal_already_reached(goal)}"
        return BotReply(text, _goal_buttons(goal))

    def _list_goals(self, user_id: str, args: str) -> BotReply:
        goals = self.store.list_goals(user_id)
        if not goals:
            return BotReply(messages.no_goals_text())
        return BotReply(messages.goals_list(goals), _goals_keyboard(goals))

    def _progress(self, user_id: str, args: str) -> BotReply:
        name = args
        if not name:
            goals = self.store.list_goals(user_id)
            if not goals:
                return BotReply(messages.no_goals_text())
            name = resolve_goal(goals, self.store.last_goal(user_id)).name

        goal, saved = self._mutate(self.store.get_progress, user_id, name)
        return _with_unsaved_warning(BotReply(messages.goal_progress(goal), _goal_buttons(goal)), saved)

    def _delete(self, user_id: str, args: str) -> BotReply:
        if not args:
            return BotReply(messages.USAGE["delete"])

        goal, saved = self._mutate(self.store.delete_goal, user_id, args)
        return _with_unsaved_warning(BotReply(messages.goal_deleted(goal)), saved)

    def _progress_callback(self, user_id: str, name: str) -> BotReply:
        return self._progress(user_id, name)

    def _add_callback(self, user_id: str, name: str) -> BotReply:
        goal, saved = self._mutate(self.store.get_progress, user_id, name)
        return _with_unsaved_warning(BotReply(messages.add_to_goal_hint(goal)), saved)

    def _delete_callback(self, user_id: str, name: str) -> BotReply:
        # Read-only lookup: asking for confirmation must not move the last-goal pointer.
        goals = self.store.list_goals(user_id)
        if not goals:
            return BotReply(messages.no_goals_text())
        goal = resolve_goal(goals, None, name)
        row = _row(
            InlineButton("Yes, delete", f"{CALLBACK_DELETE_CONFIRM}:{goal.name}"),
            InlineButton("No", CALLBACK_CANCEL),
        )
        return BotReply(messages.confirm_delete(goal), [row] if row else [])

    def _delete_confirm_callback(self, user_id: str, name: str) -> BotReply:
        return self._delete(user_id, name)
