"""Messaging enums."""

from enum import Enum


class MessageStatus(str, Enum):
    """
    Delivery state of a message.

    Transitions only move forward: sent → delivered → read
    """

    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]


_STATUS_RANK = {
    MessageStatus.SENT: 0,
    MessageStatus.DELIVERED: 1,
    MessageStatus.READ: 2,
}
