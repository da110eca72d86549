"""Simple two-language (vi/en) translation helper."""

_STRINGS: dict[str, dict[str, str]] = {
    "page_title": {
        "vi": "Bản đồ may mắn",
        "en": "LuckyMap",
    },
    "label_origin": {
        "vi": "Điểm đi",
        "en": "From",
    },
    "label_destination": {
        "vi": "Điểm đến",
        "en": "To",
    },
    "label_pick_place": {
        "vi": "Chọn địa điểm",
        "en": "Pick a place",
    },
    "label_birth_year": {
        "vi": "Năm sinh",
        "en": "Birth year",
    },
    "label_gender": {
        "vi": "Giới tính",
        "en": "Gender",
    },
    "gender_male": {
        "vi": "Nam",
        "en": "Male",
    },
    "gender_female": {
        "vi": "Nữ",
        "en": "Female",
    },
    "label_vehicle": {
        "vi": "Phương tiện",
        "en": "Travel by",
    },
    "vehicle_driving": {
        "vi": "Xe",
        "en": "Vehicle",
    },
    "vehicle_foot": {
        "vi": "Đi bộ",
        "en": "On foot",
    },
    "label_date": {
        "vi": "Ngày",
        "en": "Date",
    },
    "label_time": {
        "vi": "Giờ",
        "en": "Time",
    },
    "btn_find_routes": {
        "vi": "✦ Tìm đường may mắn",
        "en": "✦ Find lucky routes",
    },
    "placeholder": {
        "vi": "Nhập điểm đi, điểm đến và năm sinh để xem tuyến đường may mắn",
        "en": "Enter a start, a destination and your birth year to see lucky routes",
    },
    "loading_compute": {
        "vi": "✦ Đang tính hướng và tuyến đường",
        "en": "✦ Reading the stars and the roads",
    },
    "error_query": {
        "vi": "Thiếu hoặc sai thông tin: {error}",
        "en": "Missing or invalid input: {error}",
    },
    "error_place": {
        "vi": "Chưa chọn được điểm đi hoặc điểm đến.",
        "en": "Pick both a start and a destination first.",
    },
    "route_endpoints": {
        "vi": "Từ {origin} đến {destination}",
        "en": "From {origin} to {destination}",
    },
    "no_routes": {
        "vi": "Không tìm thấy tuyến đường nào. Hãy thử lại sau.",
        "en": "No routes came back from the routing service. Try again later.",
    },
    "summary": {
        "vi": "Sao bản mệnh: {nine_qi} · Sao trung cung: {center} · Hướng xấu: {directions}",
        "en": "Personal star: {nine_qi} · Center star: {center} · Risk directions: {directions}",
    },
    "no_risk_directions": {
        "vi": "không có",
        "en": "none",
    },
    "route_line": {
        "vi": "Tuyến {n}: {lucky:.2f} điểm · {km:.1f} km · {minutes:.0f} phút",
        "en": "Route {n}: {lucky:.2f} pts · {km:.1f} km · {minutes:.0f} min",
    },
    "open_google_maps": {
        "vi": "Mở Google Maps",
        "en": "Open in Google Maps",
    },
    "marker_origin": {
        "vi": "Điểm đi",
        "en": "Start",
    },
    "marker_destination": {
        "vi": "Điểm đến",
        "en": "Destination",
    },
}

# Compass code → display name
_DIRECTIONS: dict[str, dict[str, str]] = {
    "N": {"vi": "Bắc", "en": "North"},
    "NE": {"vi": "Đông Bắc", "en": "Northeast"},
    "E": {"vi": "Đông", "en": "East"},
    "SE": {"vi": "Đông Nam", "en": "Southeast"},
    "S": {"vi": "Nam", "en": "South"},
    "SW": {"vi": "Tây Nam", "en": "Southwest"},
    "W": {"vi": "Tây", "en": "West"},
    "NW": {"vi": "Tây Bắc", "en": "Northwest"},
}


def t(key: str, lang: str) -> str:
    """Return the translated string for key in lang.

    Falls back to 'en', then to the key itself if not found.
    """
    entry = _STRINGS.get(key)
    if entry is None:
        return key
    return entry.get(lang) or entry.get("en") or key


def direction_name(code: str, lang: str) -> str:
    """Display name for a compass code; unknown codes are returned unchanged."""
    entry = _DIRECTIONS.get(code)
    if entry is None:
        return code
    return entry.get(lang) or entry["en"]
