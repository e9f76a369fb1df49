"""Operator notifications."""

from notify.telegram import TelegramNotifier

__all__ = ["TelegramNotifier"]
