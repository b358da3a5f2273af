"""FunnelSync - KPI Engine.

Computes derived KPIs from the additive totals of a reconciled row:
CPC, CPA, lead→opportunity CVR, opportunity→won CVR, ROAS.

Every ratio is zero-guarded: a zero denominator yields 0.0, never an
exception, NaN or infinity.
"""


def safe_ratio(numerator: float, denominator: float) -> float:
    """numerator / denominator, or 0.0 when the denominator is not positive."""
    if denominator > 0:
        return numerator / denominator
    return 0.0


def cpc(cost: float, clicks: int) -> float:
    return safe_ratio(cost, clicks)


def cpa(cost: float, leads: int) -> float:
    return safe_ratio(cost, leads)


def cvr_lead_to_opp(opportunities: int, leads: int) -> float:
    return safe_ratio(opportunities, leads)


def cvr_opp_to_won(closed_won: int, opportunities: int) -> float:
    return safe_ratio(closed_won, opportunities)


def roas(revenue: float, cost: float) -> float:
    return safe_ratio(revenue, cost)

