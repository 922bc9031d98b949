from __future__ import annotations

import math


def cos_incidence(
    solar_elevation_deg: float,
    solar_azimuth_deg: float,
    panel_tilt_deg: float,
    panel_azimuth_deg: float,
) -> float:
    """Cosine of the angle between the sun's rays and the panel normal."""
    elev = math.radians(solar_elevation_deg)
    tilt = math.radians(panel_tilt_deg)
    az_diff = math.radians(panel_azimuth_deg - solar_azimuth_deg)
    return math.sin(elev) * math.cos(tilt) + math.cos(elev) * math.sin(tilt) * math.cos(az_diff)


def incident_irradiance_wm2(
    ghi_wm2: float,
    solar_elevation_deg: float,
    solar_azimuth_deg: float,
    panel_tilt_deg: float,
    panel_azimuth_deg: float,
) -> float:
    """Irradiance on a fixed tilted plane (W/m²).

    Beam-only geometric projection: the irradiance proxy is treated as the whole
    driving signal, with no diffuse or ground-reflected terms.
    """
    if solar_elevation_deg <= 0:
        return 0.0
    ratio = max(0.0, cos_incidence(solar_elevation_deg, solar_azimuth_deg, panel_tilt_deg, panel_azimuth_deg))
    return max(0.0, float(ghi_wm2) * ratio)
