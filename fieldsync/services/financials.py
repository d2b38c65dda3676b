"""Financial snapshot frozen onto a job when it is paid."""
from __future__ import annotations

from fieldsync.utils.quantities import q
from .reconcile import item_key, normalize_name


def _f(value):
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def _unit_cost(item, item_costs):
    if item.get("unitCost") not in (None, ""):
        return _f(item.get("unitCost"))
    key = item_key(item)
    if key and key in item_costs:
        return item_costs[key]
    return item_costs.get(normalize_name(item.get("name")), 0.0)


def compute_financials(job: dict, costs: dict, item_costs: dict | None = None) -> dict:
    """Freeze a job's revenue, cost of goods and margin.

    Quantities come from ``actuals`` when the crew reported them, otherwise
    from the estimated ``materials``. ``item_costs`` maps inventory item ids
    and lower-cased names to unit cost for items whose line carries none.
    ``margin`` is a fraction of revenue.
    """
    costs = costs or {}
    item_costs = item_costs or {}
    materials = job.get("materials") or {}
    actuals = job.get("actuals") or {}
    expenses = job.get("expenses") or {}
    used = actuals or materials

    chemical = (
        _f(used.get("openCellSets")) * _f(costs.get("openCell"))
        + _f(used.get("closedCellSets")) * _f(costs.get("closedCell"))
    )
    hours = _f(actuals.get("laborHours")) or _f(expenses.get("manHours"))
    rate = _f(expenses.get("laborRate")) or _f(costs.get("laborRate"))
    labor = hours * rate

    inventory_lines = used.get("inventory") or materials.get("inventory") or []
    inventory = sum(
        _f(line.get("quantity")) * _unit_cost(line, item_costs)
        for line in inventory_lines
    )

    other = expenses.get("other") or {}
    misc = (
        _f(expenses.get("tripCharge"))
        + _f(expenses.get("fuelSurcharge"))
        + (_f(other.get("amount")) if isinstance(other, dict) else 0.0)
    )

    revenue = _f(job.get("totalValue"))
    total_cogs = chemical + labor + inventory + misc
    net = revenue - total_cogs
    return {
        "revenue": q(revenue),
        "chemicalCost": q(chemical),
        "laborCost": q(labor),
        "inventoryCost": q(inventory),
        "miscCost": q(misc),
        "totalCOGS": q(total_cogs),
        "netProfit": q(net),
        "margin": q(net / revenue) if revenue else 0.0,
    }
