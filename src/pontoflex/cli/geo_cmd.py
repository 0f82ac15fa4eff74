"""Geofence commands."""
import click

from pontoflex.core.constants import DEFAULT_GEOFENCE_RADIUS_M
from pontoflex.geo import haversine_distance, within_geofence

from .output import print_json


@click.group()
def geo():
    """Geofence helpers."""
    pass


@geo.command()
@click.argument('lat1', type=float)
@click.argument('lon1', type=float)
@click.argument('lat2', type=float)
@click.argument('lon2', type=float)
@click.option('--radius', type=float, default=DEFAULT_GEOFENCE_RADIUS_M, help='Geofence radius in meters')
def distance(lat1: float, lon1: float, lat2: float, lon2: float, radius: float):
    """Distance between two points and whether it is inside the radius."""
    meters = haversine_distance(lat1, lon1, lat2, lon2)
    print_json({
        "distance_m": round(meters, 2),
        "radius_m": radius,
        "within_geofence": within_geofence(meters, radius),
    })
