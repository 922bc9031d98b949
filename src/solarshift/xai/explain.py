from __future__ import annotations

from typing import Dict

# avg solar kW thresholds for the headline tier
PEAK_SOLAR_KW = 2.0
GOOD_SOLAR_KW = 1.0

CURRENCY_SYMBOLS: Dict[str, str] = {
    "INR": "₹",
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "AUD": "A$",
}


def currency_symbol(code: str) -> str:
    code = (code or "").upper()
    return CURRENCY_SYMBOLS.get(code, f"{code} " if code else "")


def format_hour(hour: int) -> str:
    """12-hour clock label, e.g. 0 -> '12:00 AM', 13 -> '1:00 PM'."""
    h = int(hour) % 24
    suffix = "PM" if h >= 12 else "AM"
    display = 12 if h == 0 else h - 12 if h > 12 else h
    return f"{display}:00 {suffix}"


def solar_tier(avg_solar_kw: float) -> str:
    if avg_solar_kw > PEAK_SOLAR_KW:
        return "peak"
    if avg_solar_kw > GOOD_SOLAR_KW:
        return "good"
    return "optimal"


def generate_recommendation_reason(
    device_name: str,
    start_hour: int,
    end_hour: int,
    avg_solar_kw: float,
    savings: float,
    co2_avoided_kg: float,
    currency: str = "INR",
) -> str:
    """Plain-language justification for a recommended run window.

    The lowest tier is still framed positively; it is the best window the
    device's constraints allow, not necessarily a sunny one.
    """
    time_slot = f"{format_hour(start_hour)} - {format_hour(end_hour)}"
    outcome = f"to save {currency_symbol(currency)}{savings:.0f} and avoid {co2_avoided_kg:.1f} kg CO₂"

    tier = solar_tier(avg_solar_kw)
    if tier == "peak":
        return f"Peak solar generation period. Run {device_name} {time_slot} {outcome}"
    if tier == "good":
        return f"Good solar output expected. Schedule {device_name} {time_slot} {outcome}"
    return f"Optimal timing for renewable energy use. Run {device_name} {time_slot} {outcome}"
