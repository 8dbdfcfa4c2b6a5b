from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Sequence

from rich import box
from rich.console import Console
from rich.table import Table

from agrofacil.domain.models import Cost, Sale


@dataclass(frozen=True)
class Summary:
    total_costs: Decimal
    total_sales: Decimal
    cost_count: int
    sale_count: int

    @property
    def profit(self) -> Decimal:
        return self.total_sales - self.total_costs


def build_summary(sales: Sequence[Sale], costs: Sequence[Cost]) -> Summary:
    """
    Totals of recorded sales and costs. Sale totals are the amounts captured
    when each sale was made.
    """
    return Summary(
        total_costs=sum((c.amount for c in costs), Decimal("0")),
        total_sales=sum((s.total_amount for s in sales), Decimal("0")),
        cost_count=len(costs),
        sale_count=len(sales),
    )


def _money(value: Decimal) -> str:
    return f"{value:.2f}"


def render_text_report(sales: Sequence[Sale], costs: Sequence[Cost]) -> str:
    """
    Plain-text report: totals, then one line per cost, then one line per sale.
    """
    summary = build_summary(sales, costs)
    lines = [
        "=== AGROFACIL REPORT ===",
        "",
        f"Total costs: {_money(summary.total_costs)}",
        f"Total sales: {_money(summary.total_sales)}",
        f"Profit/Loss: {_money(summary.profit)}",
        "",
        "--- COSTS ---",
    ]
    for cost in costs:
        lines.append(
            f"{cost.category} - {cost.description} - {_money(cost.amount)} - "
            f"{cost.occurred_at.isoformat()}"
        )
    lines.extend(["", "--- SALES ---"])
    for sale in sales:
        lines.append(
            f"{sale.product_name} - Qty: {sale.quantity} - {_money(sale.total_amount)} - "
            f"{sale.created_at.isoformat()}"
        )
    return "\n".join(lines) + "\n"


def print_summary(
    sales: Sequence[Sale],
    costs: Sequence[Cost],
    pending: int = 0,
    console: Optional[Console] = None,
) -> None:
    """
    Render the totals as a rich table.
    """
    console = console or Console()
    summary = build_summary(sales, costs)

    table = Table(
        title="AgroFácil Summary",
        box=box.ROUNDED,
        caption=f"{pending} record(s) waiting to sync" if pending else None,
    )
    table.add_column("Metric", style="cyan", no_wrap=True)
    table.add_column("Records", justify="right", style="magenta")
    table.add_column("Amount", justify="right", style="bold green")

    table.add_row("Costs", str(summary.cost_count), _money(summary.total_costs))
    table.add_row("Sales", str(summary.sale_count), _money(summary.total_sales))
    profit_style = "bold green" if summary.profit >= 0 else "bold red"
    table.add_row("Profit/Loss", "", f"[{profit_style}]{_money(summary.profit)}[/{profit_style}]")

    console.print(table)


__all__ = ["Summary", "build_summary", "render_text_report", "print_summary"]
