ZODIAC_SIGNS = [
    "Aries", "Taurus", "Gemini", "Cancer",
    "Leo", "Virgo", "Libra", "Scorpio",
    "Sagittarius", "Capricorn", "Aquarius", "Pisces"
]


def normalize_angle(angle: float) -> float:
    """Reduce any real angle into [0, 360)."""
    lon = angle % 360.0
    # float modulo can round up to exactly 360 for tiny negatives
    if lon >= 360.0:
        lon = 0.0
    return lon + 0.0


def angle_diff(a: float, b: float) -> float:
    """Shortest circular distance between two longitudes, in [0, 180]."""
    diff = abs(a - b) % 360
    if diff > 180:
        diff = 360 - diff
    return diff


def deg_to_sign(lon: float) -> dict:
    lon = normalize_angle(lon)
    sign_index = int(lon / 30)
    deg_in_sign = lon % 30
    return {
        "sign": ZODIAC_SIGNS[sign_index],
        "deg_in_sign": round(deg_in_sign, 4)
    }
