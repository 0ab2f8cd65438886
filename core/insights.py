"""
Narrative insights for a growth forecast.

The text-generation service is optional. Whenever it is unconfigured, slow,
failing or returns nothing usable, the deterministic rule-based insights are
used instead. ``generate_insights`` never raises.
"""
import asyncio
import json
import re
from typing import Dict, List, Optional, Sequence, Union

from core.config import config
from core.exceptions import InsightGenerationError
from core.models import InsightKind, InsightResult, Momentum, QuarterAggregate
from core.observability import get_logger

logger = get_logger(__name__)

SYSTEM_PROMPT = (
    "You are a business analytics advisor for salon/beauty businesses. "
    "Given revenue data, provide 3-4 concise, actionable insights about growth trends, "
    "seasonality, and recommendations. Each insight should be 1-2 sentences. "
    "Return ONLY a JSON array of strings. No markdown."
)

NO_DATA_INSIGHT = (
    "Not enough historical data to generate growth forecasts. "
    "Revenue data will be analyzed once available."
)

MIN_QUARTERS_FOR_LLM = 2
MIN_LINE_LENGTH = 10

_FENCE_RE = re.compile(r"```(?:json)?\n?|\n?```")
_BULLET_RE = re.compile(r"^[-*•]\s*")


def _momentum_text(momentum: Union[Momentum, str]) -> str:
    return getattr(momentum, "value", momentum)


def build_insight_context(
    quarters: Sequence[QuarterAggregate],
    growth_rates: Sequence[float],
    yoy_growth: Optional[float],
    momentum: Union[Momentum, str],
    indices: Dict[int, float],
    trend_r2: float,
) -> str:
    """User message summarising the series for the text-generation service."""
    quarter_lines = "\n".join(
        f"{q.label}: ${q.total_revenue:,.0f} "
        f"(services: ${q.service_revenue:,.0f}, products: ${q.product_revenue:,.0f})"
        for q in quarters
    )
    rates = ", ".join(f"{r:.1f}%" for r in growth_rates) or "N/A"
    yoy = f"{yoy_growth:.1f}%" if yoy_growth is not None else "N/A"
    seasonal = ", ".join(f"Q{q}: {idx:.2f}" for q, idx in sorted(indices.items()))

    return (
        "Historical quarterly revenue data for a salon/beauty business:\n"
        f"{quarter_lines}\n\n"
        f"QoQ growth rates: {rates}\n"
        f"YoY growth: {yoy}\n"
        f"Momentum: {_momentum_text(momentum)}\n"
        f"Seasonal indices: {seasonal}\n"
        f"Trend R²: {trend_r2:.3f}"
    )


def parse_insight_response(text: str) -> List[str]:
    """
    Extract insight strings from a model response.

    Tries a JSON array first (code fences stripped). If the text is not
    JSON, splits it into lines, strips bullet markers and keeps lines longer
    than MIN_LINE_LENGTH. JSON that isn't an array yields no insights.
    """
    if not text:
        return []

    cleaned = _FENCE_RE.sub("", text).strip()
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError:
        lines = (_BULLET_RE.sub("", line).strip() for line in cleaned.split("\n"))
        return [line for line in lines if len(line) > MIN_LINE_LENGTH]

    if not isinstance(parsed, list):
        return []
    return [item.strip() for item in parsed if isinstance(item, str) and item.strip()]


def fallback_insights(
    quarters: Sequence[QuarterAggregate],
    momentum: Union[Momentum, str],
    indices: Dict[int, float],
) -> List[str]:
    """Deterministic insights from the last two quarters and the momentum label."""
    momentum_line = f"Revenue momentum is {_momentum_text(momentum)} based on recent quarter trends."

    if not quarters:
        return [NO_DATA_INSIGHT]

    if len(quarters) == 1:
        only = quarters[0]
        return [
            f"Only one quarter of history is available ({only.label}); "
            "projections will sharpen as more quarters are recorded.",
            momentum_line,
        ]

    last, prev = quarters[-1], quarters[-2]
    if prev.total_revenue > 0:
        qoq_change = (last.total_revenue - prev.total_revenue) / prev.total_revenue * 100
    else:
        qoq_change = 0.0

    direction = "grew" if qoq_change >= 0 else "declined"
    strongest = max(range(1, 5), key=lambda q: indices.get(q, 1.0))

    return [
        f"Revenue {direction} {abs(qoq_change):.1f}% last quarter ({last.label}).",
        momentum_line,
        f"Q{strongest} tends to be your strongest quarter historically.",
    ]


async def generate_insights(
    llm_client,
    quarters: Sequence[QuarterAggregate],
    growth_rates: Sequence[float],
    yoy_growth: Optional[float],
    momentum: Union[Momentum, str],
    indices: Dict[int, float],
    trend_r2: float,
    timeout: Optional[float] = None,
) -> InsightResult:
    """
    Ask the text-generation service for insights, falling back to rules.

    Args:
        llm_client: Object with ``is_available`` and ``async complete(system, user)``,
            or None to skip the service entirely
        timeout: Upper bound in seconds for the service call

    Returns:
        InsightResult tagged ``parsed`` or ``fallback``
    """
    def fallback() -> InsightResult:
        return InsightResult(
            kind=InsightKind.FALLBACK,
            insights=fallback_insights(quarters, momentum, indices),
        )

    if llm_client is None or not llm_client.is_available:
        return fallback()

    if len(quarters) < MIN_QUARTERS_FOR_LLM:
        logger.debug(f"Skipping LLM insights: {len(quarters)} quarter(s) of history")
        return fallback()

    context = build_insight_context(quarters, growth_rates, yoy_growth, momentum, indices, trend_r2)
    timeout = timeout if timeout is not None else config.insights.timeout_seconds

    try:
        text = await asyncio.wait_for(llm_client.complete(SYSTEM_PROMPT, context), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"LLM insights timed out after {timeout}s, using fallback")
        return fallback()
    except InsightGenerationError as e:
        logger.warning(f"LLM insights unavailable, using fallback: {e}")
        return fallback()
    except Exception as e:
        logger.error(f"Unexpected LLM insights error, using fallback: {e}", exc_info=True)
        return fallback()

    insights = parse_insight_response(text)
    if not insights:
        logger.warning(
            "LLM returned no usable insights, using fallback",
            extra={"response_preview": (text or "")[:200]},
        )
        return fallback()

    return InsightResult(kind=InsightKind.PARSED, insights=insights)
