"""
Derived KPI formulas over raw ad counters.

Every formula returns 0 when its denominator is 0, never NaN or an
infinite value. ROAS follows the same rule: zero spend gives 0 even
when there is income.
"""
import math


def safe_divide(numerator: float, denominator: float) -> float:
    """Return numerator / denominator, or 0 when denominator is 0."""
    if denominator == 0:
        return 0.0
    return numerator / denominator


def calc_ctr(clicks: float, impressions: float) -> float:
    """Click-through rate, %."""
    return safe_divide(clicks, impressions) * 100


def calc_cpc(spend: float, clicks: float) -> float:
    """Cost per click."""
    return safe_divide(spend, clicks)


def calc_cpm(spend: float, impressions: float) -> float:
    """Cost per thousand impressions."""
    return safe_divide(spend, impressions) * 1000


def calc_cpl(spend: float, leads: float) -> float:
    """Cost per lead."""
    return safe_divide(spend, leads)


def calc_cpr(spend: float, results: float) -> float:
    """Cost per result."""
    return safe_divide(spend, results)


def calc_cps(spend: float, sales: float) -> float:
    """Cost per sale."""
    return safe_divide(spend, sales)


def calc_cpql(spend: float, qualified_leads: float) -> float:
    """Cost per qualified lead."""
    return safe_divide(spend, qualified_leads)


def calc_aov(income: float, sales: float) -> float:
    """Average order value."""
    return safe_divide(income, sales)


def calc_roas(income: float, expense: float) -> float:
    """Return on ad spend: (income - expense) / expense, %."""
    return safe_divide(income - expense, expense) * 100


def calc_cpshow(spend: float, appointments_attended: float) -> float:
    """Cost per attended appointment."""
    return safe_divide(spend, appointments_attended)


# ─── Rounding ────────────────────────────────────────────────────────────────
# Halves round up (towards +inf), matching what the dashboard shows.

def round2(value: float) -> float:
    return math.floor(value * 100 + 0.5) / 100


def round1(value: float) -> float:
    return math.floor(value * 10 + 0.5) / 10
