"""Plotly interactive route map renderer.

Draws the ranked routes over OpenStreetMap tiles. The best route is drawn
last and thickest so it sits on top.
"""

import plotly.graph_objects as go

from luckymap.i18n import t
from luckymap.models import LuckyRoutesResult, ScoredRoute

_BEST_COLOR = "#2e9e5b"
_ROUTE_COLORS = ["#e0a030", "#c9a96e", "#7ec8e3", "#9b8fd4"]
_ENDPOINT_COLOR = "#d9534f"


def _route_trace(r: ScoredRoute, lang: str) -> go.Scattermap:
    lons = [p[0] for p in r.route.geometry]
    lats = [p[1] for p in r.route.geometry]
    rank = r.index or 0
    best = rank == 0
    label = t("route_line", lang).format(
        n=rank + 1,
        lucky=r.lucky_point,
        km=r.route.distance / 1000,
        minutes=r.route.duration / 60,
    )
    return go.Scattermap(
        lon=lons,
        lat=lats,
        mode="lines",
        line=dict(
            width=6 if best else 3,
            color=_BEST_COLOR if best else _ROUTE_COLORS[(rank - 1) % len(_ROUTE_COLORS)],
        ),
        opacity=1.0 if best else 0.7,
        hoverinfo="text",
        text=label,
        name=label,
    )


def render_route_map(result: LuckyRoutesResult, lang: str = "vi") -> go.Figure:
    """Render a LuckyRoutesResult as an interactive map.

    Args:
        result: Ranked routes plus the query they answer.
        lang: Language for hover labels.

    Returns:
        Plotly Figure with one trace per route and one endpoint trace.
    """
    origin, destination = result.query.origin, result.query.destination

    # Worst first so the best route is drawn on top
    traces = [_route_trace(r, lang) for r in reversed(result.routes)]
    traces.append(
        go.Scattermap(
            lon=[origin.lng, destination.lng],
            lat=[origin.lat, destination.lat],
            mode="markers",
            marker=dict(size=12, color=_ENDPOINT_COLOR),
            hoverinfo="text",
            text=[t("marker_origin", lang), t("marker_destination", lang)],
            name="endpoints",
        )
    )

    fig = go.Figure(data=traces)
    fig.update_layout(
        showlegend=False,
        margin=dict(l=0, r=0, t=0, b=0),
        height=560,
        map=dict(
            style="open-street-map",
            center=dict(
                lat=(origin.lat + destination.lat) / 2,
                lon=(origin.lng + destination.lng) / 2,
            ),
            zoom=13,
        ),
    )
    return fig
