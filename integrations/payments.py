"""Payment setup collaborator: product, price and payment link creation.

The Stripe implementation talks to the REST API with form-encoded requests,
test mode during coding and live mode after approval.
"""

import logging
import re
from abc import ABC, abstractmethod
from typing import Dict, Optional

import requests

from contracts import ProjectState, PaymentInfo, PaymentSetupFailure
from config import settings

logger = logging.getLogger(__name__)

PLACEHOLDER = "<!-- PAYMENT_LINK -->"
PAYMENT_BUTTON_RE = re.compile(
    r'<button([^>]*class="[^"]*pay[^"]*"[^>]*)>(.*?)</button>',
    re.IGNORECASE | re.DOTALL,
)


def inject_payment_link(html: str, link: str) -> str:
    """Put the payment link into generated HTML.

    Tried in order: placeholder comment, an existing payment button, a
    centered button before </body>, and finally a trailing comment.
    """
    if PLACEHOLDER in html:
        return html.replace(PLACEHOLDER, f'<a href="{link}" class="payment-button">Buy Now</a>', 1)

    if PAYMENT_BUTTON_RE.search(html):
        return PAYMENT_BUTTON_RE.sub(lambda m: f'<a href="{link}"{m.group(1)}>{m.group(2)}</a>', html, count=1)

    if "</body>" in html:
        button = (
            '  <div style="text-align: center; margin: 40px;">\n'
            f'    <a href="{link}" style="display: inline-block; padding: 15px 30px; background: #635bff; '
            'color: white; text-decoration: none; border-radius: 5px; font-weight: bold;">\n'
            "      Buy Now\n"
            "    </a>\n"
            "  </div>\n"
            "</body>"
        )
        return html.replace("</body>", button, 1)

    return f"{html}\n\n<!-- Stripe Payment Link: {link} -->"


class PaymentSetup(ABC):
    """Creates sellable products for generated projects."""

    live: bool = False

    @abstractmethod
    def create_product(self, state: ProjectState) -> str:
        pass

    @abstractmethod
    def create_price(self, product_id: str, amount: float, currency: str) -> str:
        pass

    @abstractmethod
    def create_payment_link(self, price_id: str, state: ProjectState) -> str:
        pass

    @abstractmethod
    def for_live_mode(self) -> "PaymentSetup":
        """A copy of this collaborator that creates live-mode objects."""
        pass

    def inject_link(self, artifact: str, link: str) -> str:
        return inject_payment_link(artifact, link)

    def automate(self, state: ProjectState, amount: Optional[float] = None, currency: Optional[str] = None) -> PaymentInfo:
        """Create product, price and payment link in one go."""
        amount = amount if amount is not None else settings.default_price_amount
        currency = (currency or settings.default_currency).lower()
        mode = "LIVE" if self.live else "TEST"
        extra = {"order_id": state.order_id, "phase": state.status.value}

        logger.info("Creating payment setup for %s (%s mode)", state.project_name, mode, extra=extra)
        product_id = self.create_product(state)
        price_id = self.create_price(product_id, amount, currency)
        link = self.create_payment_link(price_id, state)
        logger.info("Payment link created: %s", link, extra=extra)
        return PaymentInfo(product_id=product_id, price_id=price_id, payment_link=link, live=self.live)


class StripePaymentSetup(PaymentSetup):
    """Stripe REST API client."""

    def __init__(
        self,
        live: bool = False,
        api_key: Optional[str] = None,
        api_base: Optional[str] = None,
        timeout: float = 30,
        live_api_key: Optional[str] = None,
    ):
        self.live = live
        self.live_api_key = live_api_key
        self.api_key = api_key if api_key is not None else (
            settings.stripe_live_key if live else settings.stripe_test_key
        )
        self.api_base = (api_base or settings.stripe_api_base).rstrip("/")
        self.timeout = timeout

    def is_available(self) -> bool:
        return bool(self.api_key)

    def for_live_mode(self) -> "StripePaymentSetup":
        return StripePaymentSetup(live=True, api_key=self.live_api_key, api_base=self.api_base, timeout=self.timeout)

    def _post(self, path: str, data: Dict[str, str], what: str) -> dict:
        if not self.api_key:
            mode = "live" if self.live else "test"
            raise PaymentSetupFailure(f"Stripe {mode} key is not configured")
        try:
            r = requests.post(
                f"{self.api_base}/{path}",
                auth=(self.api_key, ""),
                data=data,
                timeout=self.timeout,
            )
            r.raise_for_status()
        except requests.RequestException as e:
            raise PaymentSetupFailure(f"Failed to create Stripe {what}: {e}") from e
        return r.json()

    def create_product(self, state: ProjectState) -> str:
        body = self._post(
            "products",
            {
                "name": state.project_name,
                "description": state.requirements[:200],
                "metadata[order_id]": state.order_id,
                "metadata[generated_by]": "black-star-forge",
            },
            "product",
        )
        return body["id"]

    def create_price(self, product_id: str, amount: float, currency: str) -> str:
        body = self._post(
            "prices",
            {
                "product": product_id,
                "unit_amount": str(int(round(amount * 100))),
                "currency": currency.lower(),
            },
            "price",
        )
        return body["id"]

    def create_payment_link(self, price_id: str, state: ProjectState) -> str:
        body = self._post(
            "payment_links",
            {
                "line_items[0][price]": price_id,
                "line_items[0][quantity]": "1",
                "metadata[order_id]": state.order_id,
                "metadata[project_name]": state.project_name,
                "after_completion[type]": "hosted_confirmation",
                "after_completion[hosted_confirmation][custom_message]": (
                    f"Thank you for your purchase of {state.project_name}!"
                ),
            },
            "payment link",
        )
        return body["url"]
