"""Owner notification."""

from janitor.notify.base import Notifier
from janitor.notify.slack import SlackNotifier

__all__ = ["Notifier", "SlackNotifier"]
