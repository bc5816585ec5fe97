import requests
from flask import current_app

CITY_CENTRE_NOTE = "Found city center coordinates. Please verify the exact address."


class GeocodingError(Exception):
    def __init__(self, message, status=500):
        super().__init__(message)
        self.message = message
        self.status = status


def _search(query, with_details=True):
    params = {"format": "json", "q": query, "limit": 1, "countrycodes": "pt"}
    if with_details:
        params["addressdetails"] = 1
    return requests.get(
        current_app.config["GEOCODER_URL"],
        params=params,
        headers={
            "User-Agent": current_app.config["GEOCODER_USER_AGENT"],
            "Accept-Language": "en",
        },
        timeout=10,
    )


def _coordinates(result):
    try:
        lat = float(result.get("lat"))
        lng = float(result.get("lon"))
    except (TypeError, ValueError):
        raise GeocodingError(
            "Invalid coordinates returned from geocoding service", 500
        )
    return {"lat": lat, "lng": lng, "display_name": result.get("display_name")}


def geocode_address(address, city, postal_code=None):
    """Resolve a Portuguese street address to ``{lat, lng, display_name}``.

    Falls back to the city centre (with a ``note``) when the full address
    has no match.
    """
    parts = [p for p in (address, city, postal_code, "Portugal") if p]
    query = ", ".join(parts)

    try:
        response = _search(query)
    except requests.RequestException as e:
        raise GeocodingError(f"Geocoding service unavailable: {e}", 500)

    if not response.ok:
        current_app.logger.error(
            f"Nominatim error {response.status_code}: {response.text[:200]}"
        )
        raise GeocodingError(
            f"Geocoding service returned error: {response.status_code}",
            response.status_code,
        )

    data = response.json()
    if isinstance(data, list) and data:
        return _coordinates(data[0])

    if len(parts) > 2:
        try:
            fallback = _search(f"{city}, Portugal", with_details=False)
        except requests.RequestException:
            fallback = None
        if fallback is not None and fallback.ok:
            fallback_data = fallback.json()
            if isinstance(fallback_data, list) and fallback_data:
                result = _coordinates(fallback_data[0])
                result["note"] = CITY_CENTRE_NOTE
                return result

    raise GeocodingError(
        f'No results found for "{query}". Please check the address and try again, '
        "or enter coordinates manually.",
        404,
    )
