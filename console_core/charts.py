from __future__ import annotations

from typing import Any, Dict

import altair as alt
import pandas as pd

alt.data_transformers.disable_max_rows()


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def stats_bar_chart(frame: pd.DataFrame) -> alt.Chart:
    """Grouped bars of total vs active per category.

    ``frame`` is the wide stats table (category, total, active).
    """
    long = frame.melt(id_vars=["category"], value_vars=["total", "active"], var_name="measure", value_name="count")
    return (
        alt.Chart(long)
        .mark_bar()
        .encode(
            x=alt.X("category:N", sort=list(frame["category"]), title=None),
            xOffset=alt.XOffset("measure:N"),
            y=alt.Y("count:Q", title="Count"),
            color=alt.Color("measure:N", title=None),
            tooltip=["category:N", "measure:N", "count:Q"],
        )
        .properties(height=280)
    )
