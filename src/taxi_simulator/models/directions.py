"""
Directions Schema
=================

Pydantic models for the route lookup response.

The route endpoint returns the Directions API "routes" array unchanged;
only the fields the simulator reads are modelled, everything else is
ignored.

Input Contract:
    [
        {
            "summary": "I-80 W",
            "overview_polyline": {"points": "_p~iF~ps|U_ulLnnqC_mqNvxq`@"},
            ...
        },
        ...
    ]
"""

from typing import List

from pydantic import BaseModel, ConfigDict, Field, RootModel


class OverviewPolyline(BaseModel):
    """Encoded overview path of a route."""

    model_config = ConfigDict(extra="ignore")

    points: str = Field(
        ...,
        description="Google encoded polyline of the whole route",
    )


class DirectionsRoute(BaseModel):
    """One alternative returned by the directions service."""

    model_config = ConfigDict(extra="ignore")

    summary: str = Field(default="", description="Short route description")
    overview_polyline: OverviewPolyline


class DirectionsResponse(RootModel[List[DirectionsRoute]]):
    """The "routes" array as returned by GET /route."""
