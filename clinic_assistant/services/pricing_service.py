"""
Price extraction and local arithmetic over prices mentioned in the conversation.
Totals and tax breakdowns are computed here and never delegated to the model.
"""

import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, Optional

from clinic_assistant.models.domain import ConversationContext, MentionedPrice
from clinic_assistant.models.intents import TaxRequest
from clinic_assistant.utils.logger import get_logger
from clinic_assistant.utils.prompts import load_prompts
from clinic_assistant.utils.text import normalize

logger = get_logger(__name__)
PROMPTS = load_prompts()

CENT = Decimal("0.01")
IVA_RATE = Decimal("12")

# "<label>: Q<amount>" or "<label> cuesta Q<amount>", label confined to one line
PRICE_PATTERN = re.compile(
    r"(?P<label>[^\W\d_][\w ]*?)\s*(?::|\bcuesta\b)\s*Q\s*(?P<amount>\d+(?:[.,]\d+)*)",
    re.IGNORECASE,
)
TAX_INCLUDED_PATTERN = re.compile(r"^\s*\(?\s*(iva incluido|incluye iva|con iva incluido)")

# Labels that belong to computed answers rather than to services
AGGREGATE_LABELS = ("total", "subtotal", "iva", "isr", "impuesto", "impuestos", "desglose")
# Conjunction and article left over from "Q150 y la consulta: Q200"
LEADING_WORDS_PATTERN = re.compile(r"^(?:(?:y|e|o)\s+)?(?:(?:la|el|los|las|una|un)\s+)?", re.IGNORECASE)

IVA_PATTERN = re.compile(r"\biva\b|impuesto al valor agregado|\b12 ?%|doce por ciento")
ISR_PATTERN = re.compile(r"\bisr\b|impuesto sobre la renta|\b5 ?%|cinco por ciento")
GENERIC_TAX_PATTERN = re.compile(r"impuesto|con impuesto|mas impuesto|impuestos")


def _parse_amount(raw: str) -> Optional[Decimal]:
    """
    Parses an amount written with ``.`` or ``,`` as decimal separator.

    Returns None for anything that is not a finite number.
    """
    text = raw.replace(",", ".")
    if text.count(".") > 1:
        # "1.250.00" style thousands separators: keep only the last dot
        head, _, tail = text.rpartition(".")
        text = head.replace(".", "") + "." + tail
    try:
        amount = Decimal(text)
    except InvalidOperation:
        return None
    if not amount.is_finite():
        return None
    return amount


def _is_aggregate(label: str) -> bool:
    """True when any word of the label names a computed amount ("en total", "su subtotal")."""
    return any(word in AGGREGATE_LABELS for word in normalize(label).split())


def extract_prices(text: str) -> list[MentionedPrice]:
    """
    Extracts labeled prices from a message, in order of appearance.

    Recognizes ``Consulta general: Q150`` and ``la consulta cuesta Q150.50``.
    Amounts that cannot be parsed are dropped silently.

    Args:
        text: Message text (usually an assistant turn)

    Returns:
        Prices found, possibly empty
    """
    prices = []
    for line in (text or "").splitlines():
        for match in PRICE_PATTERN.finditer(line):
            label = re.sub(r"^[\s\-*•]+", "", match.group("label")).strip()
            label = LEADING_WORDS_PATTERN.sub("", label)
            if not label or _is_aggregate(label):
                continue

            amount = _parse_amount(match.group("amount"))
            if amount is None:
                logger.debug("price_amount_unparsable", raw=match.group("amount"))
                continue

            tail = normalize(line[match.end():])
            includes_tax = bool(TAX_INCLUDED_PATTERN.match(tail))
            prices.append(MentionedPrice(label=label, amount=amount, includes_tax=includes_tax))
    return prices


def merge_prices(context: ConversationContext, prices: Iterable[MentionedPrice]) -> None:
    """
    Adds prices to the context, de-duplicated by normalized label.

    A label seen again updates the stored amount in place (its position is kept).

    Args:
        context: Context to update
        prices: Newly extracted prices
    """
    for price in prices:
        for index, existing in enumerate(context.mentioned_prices):
            if existing.key == price.key:
                context.mentioned_prices[index] = price
                break
        else:
            context.mentioned_prices.append(price)


def classify_tax_question(text: str) -> Optional[TaxRequest]:
    """
    Detects a tax question and which tax it refers to.

    VAT keywords win over income-tax keywords; a generic "impuesto" means VAT.

    Args:
        text: Normalized user text

    Returns:
        TaxRequest or None when no tax is mentioned
    """
    if IVA_PATTERN.search(text):
        return TaxRequest(tax_type="IVA", rate_percent=12)
    if ISR_PATTERN.search(text):
        return TaxRequest(tax_type="ISR", rate_percent=5)
    if GENERIC_TAX_PATTERN.search(text):
        return TaxRequest(tax_type="IVA", rate_percent=12)
    return None


def net_amount(price: MentionedPrice) -> Decimal:
    """Amount without IVA; tax-inclusive prices are divided by 1.12."""
    if price.includes_tax:
        return price.amount / (1 + IVA_RATE / 100)
    return price.amount


def format_money(amount: Decimal) -> str:
    """Renders an amount as ``Q1234.50`` (half-up to cents)."""
    return f"Q{amount.quantize(CENT, rounding=ROUND_HALF_UP)}"


def calculate_total(
    context: ConversationContext,
    with_tax: bool,
    tax: Optional[TaxRequest] = None,
) -> str:
    """
    Builds the itemized total of the prices mentioned so far.

    Pure with respect to its inputs. Arithmetic runs at full precision and
    rounding happens only when amounts are rendered.

    Args:
        context: Conversation context holding the mentioned prices
        with_tax: Whether to add a tax line
        tax: Tax to apply (defaults to IVA 12%)

    Returns:
        Human readable breakdown
    """
    messages = PROMPTS["pricing"]
    if not context.mentioned_prices:
        return messages["no_prices_tax"] if with_tax else messages["no_prices"]

    tax = tax or TaxRequest()
    lines = [messages["breakdown_header"]]
    subtotal = Decimal("0")
    for price in context.mentioned_prices:
        net = net_amount(price)
        subtotal += net
        suffix = messages["tax_included_suffix"] if price.includes_tax else ""
        lines.append(f"- {price.label}: {format_money(price.amount)}{suffix}")

    lines.append("")
    lines.append(f"Subtotal: {format_money(subtotal)}")

    if with_tax:
        tax_amount = subtotal * Decimal(tax.rate_percent) / 100
        lines.append(f"{tax.tax_type} ({tax.rate_percent}%): {format_money(tax_amount)}")
        lines.append(f"Total con {tax.tax_type}: {format_money(subtotal + tax_amount)}")
    else:
        lines.append(f"Total: {format_money(subtotal)}")

    logger.info(
        "total_calculated",
        items=len(context.mentioned_prices),
        with_tax=with_tax,
        tax_type=tax.tax_type if with_tax else None,
    )
    return "\n".join(lines)
