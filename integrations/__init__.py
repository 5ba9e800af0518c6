"""External integrations: payment setup and operator notifications."""

from .payments import PaymentSetup, StripePaymentSetup, inject_payment_link
from .notifier import Notifier, EmailNotifier, LogNotifier, build_notifier

__all__ = [
    "PaymentSetup",
    "StripePaymentSetup",
    "inject_payment_link",
    "Notifier",
    "EmailNotifier",
    "LogNotifier",
    "build_notifier",
]
