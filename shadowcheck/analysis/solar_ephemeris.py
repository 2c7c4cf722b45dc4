"""
Sun position calculations for the regulated winter reference day
"""

import math
from datetime import date, datetime, time, timedelta
from typing import List, Optional

import numpy as np
from loguru import logger

from ..models import SunPosition, EphemerisStep


def most_recent_winter_solstice(today: Optional[date] = None) -> date:
    """Reference date for shadow checks: the latest 21 December not after today"""
    today = today or date.today()
    solstice = date(today.year, 12, 21)
    if today >= solstice:
        return solstice
    return date(today.year - 1, 12, 21)


def solar_declination(day_of_year: int) -> float:
    """Declination in degrees (Cooper's approximation)"""
    return 23.45 * math.sin(math.radians(360 * (284 + day_of_year) / 365))


class SolarEphemerisCalculator:
    """
    Sun altitude and azimuth from local time and site latitude.

    Local clock time is treated as solar time: the hour angle is
    (hour - 12) * 15 degrees.
    """

    def sun_position(self, when: datetime, latitude: float, longitude: float = 0.0) -> SunPosition:
        """Altitude above the horizon and azimuth clockwise from north, in degrees"""
        doy = when.timetuple().tm_yday
        hour = when.hour + when.minute / 60 + when.second / 3600
        return self._position(doy, hour, latitude)

    def _position(self, day_of_year: int, hour: float, latitude: float) -> SunPosition:
        dec_rad = math.radians(solar_declination(day_of_year))
        lat_rad = math.radians(latitude)
        hour_rad = math.radians((hour - 12) * 15)

        sin_alt = (
            math.sin(lat_rad) * math.sin(dec_rad) +
            math.cos(lat_rad) * math.cos(dec_rad) * math.cos(hour_rad)
        )
        altitude = math.asin(max(-1.0, min(1.0, sin_alt)))

        azimuth = math.atan2(
            -math.sin(hour_rad),
            math.tan(dec_rad) * math.cos(lat_rad) - math.sin(lat_rad) * math.cos(hour_rad)
        )

        return SunPosition(
            altitude_deg=math.degrees(altitude),
            azimuth_deg=math.degrees(azimuth) % 360.0
        )

    def day_length_hours(self, latitude: float, on: date) -> float:
        """Approximate hours between sunrise and sunset"""
        doy = on.timetuple().tm_yday

        lat_rad = math.radians(latitude)
        dec_rad = math.radians(solar_declination(doy))

        # Hour angle at sunrise/sunset
        cos_hour_angle = -math.tan(lat_rad) * math.tan(dec_rad)

        # Handle polar day/night
        if cos_hour_angle < -1:
            return 24.0
        elif cos_hour_angle > 1:
            return 0.0

        hour_angle = math.degrees(math.acos(cos_hour_angle))
        return round(2 * hour_angle / 15, 1)

    def build_table(
        self,
        latitude: float,
        longitude: float,
        reference_date: date,
        step_hours: float = 0.5
    ) -> "EphemerisTable":
        """Precompute sun positions across the whole reference day"""
        steps = []
        start = datetime.combine(reference_date, time(0, 0))
        n_steps = int(round(24 / step_hours))
        for i in range(n_steps):
            when = start + timedelta(hours=i * step_hours)
            pos = self.sun_position(when, latitude, longitude)
            steps.append(EphemerisStep(
                hour=i * step_hours,
                altitude_deg=pos.altitude_deg,
                azimuth_deg=pos.azimuth_deg
            ))

        logger.debug(
            f"Ephemeris for {reference_date} at lat {latitude:.4f}: {len(steps)} steps, "
            f"day length {self.day_length_hours(latitude, reference_date)}h"
        )
        return EphemerisTable(reference_date=reference_date, step_hours=step_hours, steps=steps)


class EphemerisTable:
    """Sun path for one reference day, shared by every sample point of a run"""

    def __init__(self, reference_date: date, step_hours: float, steps: List[EphemerisStep]):
        self.reference_date = reference_date
        self.step_hours = step_hours
        self.steps = steps

    def window(self, start_hour: float, end_hour: float) -> List[EphemerisStep]:
        """Steps whose time lies in [start_hour, end_hour], both ends included"""
        return [s for s in self.steps if start_hour <= s.hour <= end_hour]

    def max_shadow_length(self, cast_height: float, start_hour: float, end_hour: float) -> float:
        """Longest horizontal shadow of a point at cast_height within the window"""
        altitudes = np.array([s.altitude_deg for s in self.window(start_hour, end_hour)])
        altitudes = altitudes[altitudes > 0]
        if cast_height <= 0 or altitudes.size == 0:
            return 0.0
        return float(cast_height / np.tan(np.radians(altitudes.min())))
