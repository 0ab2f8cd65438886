"""
Tests for core.insights module.
"""
import pytest

from core.exceptions import InsightGenerationError
from core.insights import (
    NO_DATA_INSIGHT,
    SYSTEM_PROMPT,
    build_insight_context,
    fallback_insights,
    generate_insights,
    parse_insight_response,
)
from core.growth_metrics import seasonal_indices
from core.models import InsightKind, Momentum

from conftest import FakeLLMClient, make_quarter


def _generate(llm_client, quarters, momentum=Momentum.STEADY, timeout=None):
    return generate_insights(
        llm_client,
        quarters,
        growth_rates=[10.0, 12.5],
        yoy_growth=20.0,
        momentum=momentum,
        indices=seasonal_indices(quarters),
        trend_r2=0.81,
        timeout=timeout,
    )


class TestParseInsightResponse:
    """Tests for parse_insight_response function."""

    def test_json_array(self):
        assert parse_insight_response('["First insight here.", "Second insight here."]') == [
            "First insight here.",
            "Second insight here.",
        ]

    def test_fenced_json(self):
        text = '```json\n["Book more color services in Q4."]\n```'
        assert parse_insight_response(text) == ["Book more color services in Q4."]

    def test_drops_empty_and_non_string_items(self):
        assert parse_insight_response('["Keep this one.", "", "  ", 42, null]') == ["Keep this one."]

    def test_json_object_yields_nothing(self):
        assert parse_insight_response('{"insights": ["x"]}') == []

    def test_bullet_list_fallback(self):
        text = (
            "Here are my insights:\n"
            "- Revenue grew strongly in the last quarter.\n"
            "* Retail products are underperforming.\n"
            "• Short\n"
            "\n"
            "• Consider a loyalty program before Q4."
        )

        assert parse_insight_response(text) == [
            "Here are my insights:",
            "Revenue grew strongly in the last quarter.",
            "Retail products are underperforming.",
            "Consider a loyalty program before Q4.",
        ]

    @pytest.mark.parametrize("text", ["", None])
    def test_empty(self, text):
        assert parse_insight_response(text) == []


class TestFallbackInsights:
    """Tests for fallback_insights function."""

    def test_growth(self):
        quarters = [make_quarter(2024, 3, 10000), make_quarter(2024, 4, 12500)]

        insights = fallback_insights(quarters, Momentum.ACCELERATING, {1: 0.9, 2: 1.0, 3: 0.8, 4: 1.3})

        assert insights == [
            "Revenue grew 25.0% last quarter (Q4 2024).",
            "Revenue momentum is accelerating based on recent quarter trends.",
            "Q4 tends to be your strongest quarter historically.",
        ]

    def test_decline(self):
        quarters = [make_quarter(2024, 1, 10000), make_quarter(2024, 2, 9000)]

        insights = fallback_insights(quarters, "decelerating", {1: 1.1, 2: 0.9, 3: 1.0, 4: 1.0})

        assert insights[0] == "Revenue declined 10.0% last quarter (Q2 2024)."
        assert insights[1] == "Revenue momentum is decelerating based on recent quarter trends."
        assert insights[2] == "Q1 tends to be your strongest quarter historically."

    def test_zero_previous_quarter(self):
        quarters = [make_quarter(2024, 1, 0), make_quarter(2024, 2, 9000)]

        insights = fallback_insights(quarters, Momentum.STEADY, {})

        assert insights[0] == "Revenue grew 0.0% last quarter (Q2 2024)."

    def test_single_quarter(self):
        insights = fallback_insights([make_quarter(2025, 1, 5000)], Momentum.STEADY, {})

        assert len(insights) == 2
        assert "Q1 2025" in insights[0]
        assert insights[1] == "Revenue momentum is steady based on recent quarter trends."

    def test_no_quarters(self):
        assert fallback_insights([], Momentum.STEADY, {}) == [NO_DATA_INSIGHT]

    def test_deterministic(self, growing_quarters):
        indices = seasonal_indices(growing_quarters)
        first = fallback_insights(growing_quarters, Momentum.STEADY, indices)
        assert fallback_insights(growing_quarters, Momentum.STEADY, indices) == first


class TestBuildInsightContext:
    def test_contains_series_and_stats(self, growing_quarters):
        context = build_insight_context(
            growing_quarters, [10.0, -5.0], None, Momentum.STEADY,
            seasonal_indices(growing_quarters), 0.756,
        )

        assert "Q4 2024: $18,000" in context
        assert "services: $12,600" in context
        assert "QoQ growth rates: 10.0%, -5.0%" in context
        assert "YoY growth: N/A" in context
        assert "Momentum: steady" in context
        assert "Q4: " in context
        assert "Trend R²: 0.756" in context

    def test_no_rates(self):
        context = build_insight_context([], [], 12.345, "steady", {}, 0.0)

        assert "QoQ growth rates: N/A" in context
        assert "YoY growth: 12.3%" in context


class TestGenerateInsights:
    """Tests for generate_insights coroutine."""

    @pytest.mark.asyncio
    async def test_parsed(self, growing_quarters, fake_llm):
        result = await _generate(fake_llm, growing_quarters)

        assert result.kind == InsightKind.PARSED
        assert not result.is_fallback
        assert result.insights == ["Revenue is trending upward.", "Q4 is your strongest quarter by far."]
        system, user = fake_llm.calls[0]
        assert system == SYSTEM_PROMPT
        assert "Q1 2023" in user

    @pytest.mark.asyncio
    async def test_no_client(self, growing_quarters):
        result = await _generate(None, growing_quarters)

        assert result.kind == InsightKind.FALLBACK
        assert len(result.insights) == 3

    @pytest.mark.asyncio
    async def test_unconfigured_client_not_called(self, growing_quarters):
        llm = FakeLLMClient(response='["x"]', available=False)

        result = await _generate(llm, growing_quarters)

        assert result.is_fallback
        assert llm.calls == []

    @pytest.mark.asyncio
    async def test_single_quarter_skips_llm(self, fake_llm):
        result = await _generate(fake_llm, [make_quarter(2025, 1, 5000)])

        assert result.is_fallback
        assert fake_llm.calls == []

    @pytest.mark.asyncio
    async def test_api_error_falls_back(self, growing_quarters):
        llm = FakeLLMClient(error=InsightGenerationError("LLM API error", "overloaded"))

        result = await _generate(llm, growing_quarters)

        assert result.is_fallback
        assert result.insights[1].startswith("Revenue momentum is")

    @pytest.mark.asyncio
    async def test_unexpected_error_falls_back(self, growing_quarters):
        llm = FakeLLMClient(error=RuntimeError("boom"))

        result = await _generate(llm, growing_quarters)

        assert result.is_fallback

    @pytest.mark.asyncio
    async def test_timeout_falls_back(self, growing_quarters):
        llm = FakeLLMClient(response='["Too late to matter."]', delay=1.0)

        result = await _generate(llm, growing_quarters, timeout=0.05)

        assert result.is_fallback

    @pytest.mark.asyncio
    async def test_unusable_response_falls_back(self, growing_quarters):
        llm = FakeLLMClient(response='{"not": "a list"}')

        result = await _generate(llm, growing_quarters)

        assert result.is_fallback

    @pytest.mark.asyncio
    async def test_prose_response_is_parsed(self, growing_quarters):
        llm = FakeLLMClient(response="- Revenue is growing every quarter.\n- Q4 is the peak season.")

        result = await _generate(llm, growing_quarters)

        assert result.kind == InsightKind.PARSED
        assert result.insights == ["Revenue is growing every quarter.", "Q4 is the peak season."]
