# Overview: Selling-price policy shared by the sale processor and the reports.

from __future__ import annotations

from flask import current_app, has_app_context

DEFAULT_MARKUP_PERCENT = 30


def markup_percent() -> int:
    if has_app_context():
        return int(current_app.config.get("DEFAULT_MARKUP_PERCENT", DEFAULT_MARKUP_PERCENT))
    return DEFAULT_MARKUP_PERCENT


def effective_selling_price_cents(
    cost_price_cents: int,
    selling_price_cents: int | None = None,
    override_cents: int | None = None,
    *,
    markup: int | None = None,
) -> int:
    """
    Price a unit is sold (or reported) at.

    Precedence: explicit override, then the item's stored selling price, then
    cost plus the default markup (cost x 1.3 at 30%), rounded half-up to the
    cent. Sales and profit reports must both go through here so that they
    agree on the fallback.
    """
    if override_cents:
        return override_cents
    if selling_price_cents:
        return selling_price_cents
    pct = markup_percent() if markup is None else markup
    # nearest-cent rounding (half-up)
    return (cost_price_cents * (100 + pct) + 50) // 100


def margin_pct(profit_cents: int, revenue_cents: int) -> float:
    """Profit as a percentage of revenue; 0 when there is no revenue."""
    if not revenue_cents:
        return 0.0
    return round(profit_cents / revenue_cents * 100.0, 2)
