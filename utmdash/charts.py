from __future__ import annotations

from typing import Any, Dict, List

import altair as alt
import pandas as pd

alt.data_transformers.disable_max_rows()

ACCENT = "#6366f1"
PIE_COLORS = [ACCENT, "#8b5cf6", "#ec4899", "#f43f5e", "#f97316", "#eab308", "#22c55e"]


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    return chart.to_dict()


def evolution_chart(evolution: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Area chart of sales per day; x keeps the order of `evolution`."""
    data = pd.DataFrame(evolution)
    hover = alt.selection_point(fields=["date"], on="mouseover", empty="all")
    area = (
        alt.Chart(data)
        .mark_area(line={"color": ACCENT, "strokeWidth": 4}, color=ACCENT, opacity=0.15, point={"filled": True, "size": 60})
        .encode(
            x=alt.X("date:N", sort=data["date"].tolist(), title=None, axis=alt.Axis(grid=False, labelAngle=0)),
            y=alt.Y("count:Q", title=None, axis=alt.Axis(gridDash=[3, 3], domain=False, ticks=False)),
            tooltip=[alt.Tooltip("date:N", title="Data"), alt.Tooltip("count:Q", title="Vendas")],
        )
        .add_params(hover)
        .properties(height=300)
    )
    return to_vega_spec(area)


def donut_chart(items: List[Dict[str, Any]]) -> Dict[str, Any]:
    data = pd.DataFrame(items)
    donut = (
        alt.Chart(data)
        .mark_arc(innerRadius=60, outerRadius=90, padAngle=0.02)
        .encode(
            theta=alt.Theta("value:Q"),
            color=alt.Color(
                "name:N",
                sort=data["name"].tolist(),
                scale=alt.Scale(range=PIE_COLORS),
                legend=alt.Legend(title=None, orient="bottom"),
            ),
            tooltip=[alt.Tooltip("name:N", title="Nome"), alt.Tooltip("value:Q", title="Vendas")],
        )
        .properties(height=240)
    )
    return to_vega_spec(donut)
