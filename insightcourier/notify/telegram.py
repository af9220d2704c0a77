"""Telegram notifier with a 👍/👎 feedback loop.

Each persisted article is announced with an inline keyboard whose callback
data carries the article id. Button presses arrive through getUpdates as
callback queries and are stored as reactions against that id.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Optional, Tuple

import requests

from insightcourier.errors import NotifyError
from insightcourier.ingestion.item_types import FeedItem
from insightcourier.storage.base import Reaction, Store
from insightcourier.storage.errors import StoreUnavailable

logger = logging.getLogger(__name__)

# Official limit: 4,096 characters per message
TELEGRAM_MAX_MESSAGE_LENGTH = 4096

BUTTON_PREFIX = "btn"

REACTION_EMOJI = {
    Reaction.LIKE: "👍",
    Reaction.DISLIKE: "👎",
}


class Notifier:
    def send(self, item: FeedItem, article_id: Optional[int] = None) -> None:
        raise NotImplementedError


def format_button_data(reaction: Reaction, article_id: int) -> str:
    return f"{BUTTON_PREFIX};{Reaction(reaction).value};{int(article_id)}"


def parse_button_data(data: str) -> Tuple[Reaction, int]:
    parts = (data or "").split(";")
    if len(parts) != 3 or parts[0] != BUTTON_PREFIX:
        raise ValueError(f"unexpected button data: {data!r}")
    try:
        reaction = Reaction(parts[1])
    except ValueError:
        raise ValueError(f"invalid button type in {data!r}") from None
    try:
        article_id = int(parts[2])
    except ValueError:
        raise ValueError(f"invalid article id in {data!r}") from None
    return reaction, article_id


def format_message(item: FeedItem) -> str:
    title = (item.title or "").strip()
    if not title:
        return item.link
    room = TELEGRAM_MAX_MESSAGE_LENGTH - len(item.link) - 1
    if len(title) > room:
        title = title[: max(0, room - 1)] + "…"
    return f"{title}\n{item.link}"


def reaction_keyboard(article_id: int) -> Dict[str, Any]:
    return {
        "inline_keyboard": [
            [
                {"text": REACTION_EMOJI[r], "callback_data": format_button_data(r, article_id)}
                for r in (Reaction.LIKE, Reaction.DISLIKE)
            ]
        ]
    }


class TelegramNotifier(Notifier):
    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        store: Optional[Store] = None,
        *,
        request_timeout: int = 30,
        api_base: str = "https://api.telegram.org",
    ):
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.store = store
        self.request_timeout = request_timeout
        self.api_base = api_base.rstrip("/")
        self._offset: Optional[int] = None

    def _call(self, method: str, payload: Dict[str, Any], *, timeout: Optional[float] = None) -> Any:
        url = f"{self.api_base}/bot{self.bot_token}/{method}"
        try:
            response = requests.post(url, json=payload, timeout=timeout or self.request_timeout)
        except requests.RequestException as e:
            raise NotifyError(f"Telegram {method} request failed: {e}") from e
        try:
            result = response.json()
        except ValueError:
            raise NotifyError(f"Telegram {method} returned non-JSON response (HTTP {response.status_code})") from None
        if not result.get("ok"):
            raise NotifyError(f"Telegram API error in {method}: {result.get('description', 'Unknown error')}")
        return result.get("result")

    def send(self, item: FeedItem, article_id: Optional[int] = None) -> None:
        data: Dict[str, Any] = {
            "chat_id": self.chat_id,
            "text": format_message(item),
        }
        if article_id is not None:
            data["reply_markup"] = reaction_keyboard(article_id)
        self._call("sendMessage", data)
        logger.info(f"Telegram message sent for {item.link} (article {article_id})")

    # Feedback loop

    def poll_feedback(self, stop: threading.Event, *, poll_timeout: int = 25, error_delay: float = 5.0) -> None:
        """Long-poll callback queries until `stop` is set.

        An update is acknowledged (the getUpdates offset moves past it) only
        once it has been handled. If the store is busy, the batch is left
        unacknowledged and Telegram redelivers it on the next poll.
        """
        if self.store is None:
            raise ValueError("poll_feedback requires a store to record reactions")
        logger.info("Listening for Telegram callback queries")
        while not stop.is_set():
            try:
                updates = self.fetch_updates(poll_timeout=poll_timeout)
            except NotifyError as e:
                logger.error(f"Failed to fetch Telegram updates: {e}")
                stop.wait(error_delay)
                continue
            for update in updates:
                try:
                    self.handle_update(update)
                except StoreUnavailable as e:
                    logger.warning(f"Store busy, will retry update {update.get('update_id')}: {e}")
                    stop.wait(error_delay)
                    break
                self.acknowledge(update)
        logger.info("Telegram feedback listener stopped")

    def fetch_updates(self, *, poll_timeout: int = 25) -> List[Dict[str, Any]]:
        payload: Dict[str, Any] = {"timeout": poll_timeout, "allowed_updates": ["callback_query"]}
        if self._offset is not None:
            payload["offset"] = self._offset
        updates = self._call("getUpdates", payload, timeout=poll_timeout + self.request_timeout) or []
        return [u for u in updates if isinstance(u, dict)]

    def acknowledge(self, update: Dict[str, Any]) -> None:
        update_id = update.get("update_id")
        if isinstance(update_id, int):
            self._offset = max(self._offset or 0, update_id + 1)

    def handle_update(self, update: Dict[str, Any]) -> bool:
        """Record the reaction carried by a callback query. Returns True on success.

        Raises StoreUnavailable when the reaction could not be recorded yet;
        the callback query is left unanswered in that case.
        """
        query = update.get("callback_query")
        if not isinstance(query, dict):
            return False
        query_id = query.get("id")
        if not query_id:
            logger.warning(f"Ignoring callback query without id in update {update.get('update_id')}")
            return False

        data = query.get("data") or ""
        try:
            reaction, article_id = parse_button_data(data)
        except ValueError as e:
            logger.warning(f"Ignoring callback query: {e}")
            self._answer(query_id)
            return False

        message_id = (query.get("message") or {}).get("message_id")
        try:
            with self.store.transaction() as tx:
                tx.add_reaction(article_id, reaction)
                if message_id is not None:
                    self._call(
                        "editMessageReplyMarkup",
                        {
                            "chat_id": self.chat_id,
                            "message_id": message_id,
                            "reply_markup": {"inline_keyboard": []},
                        },
                    )
        except StoreUnavailable:
            raise
        except Exception as e:
            logger.error(f"Failed to process button callback (data: {data}): {e}")
            self._answer(query_id)
            return False

        self._answer(query_id)
        if message_id is not None:
            try:
                self._call(
                    "setMessageReaction",
                    {
                        "chat_id": self.chat_id,
                        "message_id": message_id,
                        "reaction": [{"type": "emoji", "emoji": REACTION_EMOJI[reaction]}],
                    },
                )
            except NotifyError as e:
                logger.warning(f"Failed to set message reaction: {e}")

        logger.info(f"Recorded {reaction.value} for article {article_id}")
        return True

    def _answer(self, query_id: str) -> None:
        try:
            self._call("answerCallbackQuery", {"callback_query_id": query_id})
        except NotifyError as e:
            logger.error(f"Failed to answer callback query: {e}")
