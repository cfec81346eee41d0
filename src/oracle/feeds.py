"""Price feed collaborator.

Внешний read-only интерфейс latest_quote(feed_id). StaticFeedSource —
in-memory реализация для локального прогона и тестов: раунды задаются
вручную, как у mock-агрегатора.
"""

from typing import Dict, Optional, Protocol

from src.core.domain.quote import FeedRound


class FeedSource(Protocol):
    """Источник раундов price feed."""

    def latest_quote(self, feed_id: str) -> FeedRound:
        ...


class StaticFeedSource:
    """In-memory price feeds."""

    def __init__(self):
        self._rounds: Dict[str, FeedRound] = {}

    def set_round(
        self,
        feed_id: str,
        value: int,
        updated_at: int,
        sequence: Optional[int] = None,
        answered_in_round: Optional[int] = None,
    ) -> FeedRound:
        """
        Публикация нового раунда.

        Args:
            feed_id: идентификатор feed
            value: цена (1e8), допускаются невалидные значения
            updated_at: время обновления
            sequence: номер раунда (по умолчанию предыдущий + 1)
            answered_in_round: раунд ответа (по умолчанию == sequence)
        """
        previous = self._rounds.get(feed_id)
        if sequence is None:
            sequence = previous.sequence + 1 if previous is not None else 1
        if answered_in_round is None:
            answered_in_round = sequence

        feed_round = FeedRound(
            sequence=sequence,
            value=value,
            updated_at=updated_at,
            answered_in_round=answered_in_round,
        )
        self._rounds[feed_id] = feed_round
        return feed_round

    def latest_quote(self, feed_id: str) -> FeedRound:
        try:
            return self._rounds[feed_id]
        except KeyError:
            raise LookupError(f"Feed {feed_id!r} has no rounds") from None
