"""
AI Prompt Templates

Prompt builders for insights, pricing and forecasting. Sales summaries are
computed here so the model receives totals rather than raw rows.
"""

from collections import OrderedDict
from decimal import Decimal
from typing import Iterable, List, Sequence

from authorstack.books.schemas import BookOut
from authorstack.sales.schemas import SaleRecordOut


SYSTEM_PROMPTS = {
    "insights_analyst": (
        "You are an expert book publishing analyst specializing in indie author sales data.\n"
        "Your role is to analyze sales patterns, identify trends, and provide actionable insights.\n"
        "Always be specific with numbers and percentages. Focus on actionable recommendations.\n"
        "When analyzing data, consider seasonality, platform differences, and genre trends."
    ),
    "pricing_advisor": (
        "You are a pricing strategy expert for self-published books.\n"
        "Your role is to recommend optimal pricing based on market data, competitor analysis, "
        "and sales history.\n"
        "Consider genre norms, page count, series position, author platform size and market conditions.\n"
        "Always explain your reasoning and provide confidence levels."
    ),
    "forecaster": (
        "You are a revenue forecasting specialist for indie publishers.\n"
        "Your role is to predict future sales based on historical patterns, trends, and external factors.\n"
        "Be realistic in your predictions and always provide confidence intervals.\n"
        "Consider seasonality, launch effects, marketing campaigns and market trends."
    ),
}


def _money(value) -> str:
    return f"${Decimal(value):.2f}"


def summarize_sales(sales: Sequence[SaleRecordOut]) -> str:
    """Totals, per-platform split and average daily revenue. Expects newest first."""
    if not sales:
        return "No sales data available."

    total_revenue = sum((s.revenue for s in sales), Decimal("0"))
    total_units = sum(s.units for s in sales)

    by_platform = OrderedDict()
    for sale in sales:
        revenue, units = by_platform.get(sale.platform.value, (Decimal("0"), 0))
        by_platform[sale.platform.value] = (revenue + sale.revenue, units + sale.units)

    platform_lines = "\n".join(
        f"  - {platform}: {_money(revenue)} ({units} units)"
        for platform, (revenue, units) in by_platform.items()
    )

    return (
        f"- Date Range: {sales[-1].date.isoformat()} to {sales[0].date.isoformat()}\n"
        f"- Total Revenue: {_money(total_revenue)}\n"
        f"- Total Units: {total_units}\n"
        f"- Days of Data: {len(sales)}\n"
        f"- Avg Daily Revenue: {_money(total_revenue / len(sales))}\n"
        f"\nBy Platform:\n{platform_lines}"
    )


def analyze_trends(sales: Sequence[SaleRecordOut]) -> str:
    """Week-over-week revenue change over the newest fourteen rows"""
    if len(sales) < 7:
        return "Insufficient data for trend analysis (need at least 7 days)."

    recent = sum((s.revenue for s in sales[:7]), Decimal("0"))
    previous = sum((s.revenue for s in sales[7:14]), Decimal("0"))
    change = f"{(recent - previous) / previous * 100:.1f}" if previous > 0 else "N/A"

    return (
        f"- Week-over-week change: {change}%\n"
        f"- Recent week revenue: {_money(recent)}\n"
        f"- Previous week revenue: {_money(previous)}"
    )


def _book_lines(books: Iterable[BookOut]) -> str:
    lines = [f"- {b.title} ({', '.join(b.genres) or 'No genre'})" for b in books]
    return "\n".join(lines) or "- No books"


def insights_prompt(sales: Sequence[SaleRecordOut], books: Sequence[BookOut]) -> str:
    return f"""Analyze the following sales data and provide 3-5 actionable insights:

BOOKS:
{_book_lines(books)}

SALES SUMMARY:
{summarize_sales(sales)}

Respond with a JSON array of insights:
[
  {{
    "type": "trend|opportunity|warning|recommendation",
    "title": "Brief title",
    "description": "Detailed description with specific numbers",
    "confidence": 0.0-1.0,
    "action": "Specific action to take"
  }}
]"""


def pricing_prompt(book: BookOut, competitor_prices: List[float], sales: Sequence[SaleRecordOut]) -> str:
    if competitor_prices:
        average = f"${sum(competitor_prices) / len(competitor_prices):.2f}"
        price_range = f"${min(competitor_prices):.2f} - ${max(competitor_prices):.2f}"
        samples = ", ".join(f"${p:.2f}" for p in competitor_prices[:5])
    else:
        average = price_range = samples = "N/A"

    return f"""Recommend optimal pricing for this book:

BOOK:
- Title: {book.title}
- Author: {book.author}
- Genres: {', '.join(book.genres) or 'Not specified'}
- Current platforms: {', '.join(book.platforms) or 'Not specified'}

COMPETITOR PRICING:
- Average: {average}
- Range: {price_range}
- Sample prices: {samples}

SALES HISTORY:
{summarize_sales(sales)}

Respond with JSON:
{{
  "recommendedPrice": 0.00,
  "confidence": 0.0-1.0,
  "reasoning": "Explanation of recommendation",
  "alternatives": [
    {{ "price": 0.00, "scenario": "description" }}
  ],
  "factors": ["factor1", "factor2"]
}}"""


def forecast_prompt(sales: Sequence[SaleRecordOut], days: int) -> str:
    return f"""Generate a {days}-day revenue forecast based on this data:

HISTORICAL DATA:
{summarize_sales(sales)}

IDENTIFIED TRENDS:
{analyze_trends(sales)}

Respond with JSON:
{{
  "predictedRevenue": 0.00,
  "confidence": 0.0-1.0,
  "factors": ["key factor 1", "key factor 2"],
  "risks": ["potential risk 1"],
  "dailyPredictions": [
    {{ "date": "YYYY-MM-DD", "revenue": 0.00, "confidence": 0.0-1.0 }}
  ]
}}"""
