"""
Default Metadata

Seed data for the app-wide categories and units tables. Written by the
first schema migration and by the repair pass when either table is missing.
"""

DEFAULT_CATEGORIES = {
    "produce": {"id": "produce", "name_he": "פירות וירקות", "name_en": "Produce", "icon": "eco", "color": "#4CAF50", "order": 1},
    "dairy": {"id": "dairy", "name_he": "חלב וגבינות", "name_en": "Dairy", "icon": "local-bar", "color": "#2196F3", "order": 2},
    "meat": {"id": "meat", "name_he": "בשר ודגים", "name_en": "Meat & Fish", "icon": "restaurant", "color": "#F44336", "order": 3},
    "grains": {"id": "grains", "name_he": "דגנים וקמח", "name_en": "Grains", "icon": "grain", "color": "#FF9800", "order": 4},
    "snacks": {"id": "snacks", "name_he": "חטיפים וממתקים", "name_en": "Snacks", "icon": "cake", "color": "#E91E63", "order": 5},
    "beverages": {"id": "beverages", "name_he": "משקאות", "name_en": "Beverages", "icon": "local-drink", "color": "#00BCD4", "order": 6},
    "frozen": {"id": "frozen", "name_he": "מוקפאים", "name_en": "Frozen", "icon": "ac-unit", "color": "#9C27B0", "order": 7},
    "household": {"id": "household", "name_he": "חומרי ניקוי", "name_en": "Household", "icon": "cleaning-services", "color": "#607D8B", "order": 8},
    "personal_care": {"id": "personal_care", "name_he": "טיפוח אישי", "name_en": "Personal Care", "icon": "face", "color": "#795548", "order": 9},
    "baby": {"id": "baby", "name_he": "מוצרי תינוקות", "name_en": "Baby Products", "icon": "child-care", "color": "#FFEB3B", "order": 10},
    "pharmacy": {"id": "pharmacy", "name_he": "בית מרקחת", "name_en": "Pharmacy", "icon": "medical-services", "color": "#8BC34A", "order": 11},
    "other": {"id": "other", "name_he": "אחר", "name_en": "Other", "icon": "category", "color": "#9E9E9E", "order": 12},
}

DEFAULT_UNITS = {
    "pieces": {"id": "pieces", "name_he": "יחידות", "name_en": "Pieces", "short_name_he": "יח׳", "short_name_en": "pcs", "type": "count"},
    "kg": {"id": "kg", "name_he": "קילוגרם", "name_en": "Kilogram", "short_name_he": "ק״ג", "short_name_en": "kg", "type": "weight"},
    "grams": {"id": "grams", "name_he": "גרם", "name_en": "Grams", "short_name_he": "גר׳", "short_name_en": "g", "type": "weight"},
    "liters": {"id": "liters", "name_he": "ליטר", "name_en": "Liters", "short_name_he": "ל׳", "short_name_en": "L", "type": "volume"},
    "ml": {"id": "ml", "name_he": "מיליליטר", "name_en": "Milliliters", "short_name_he": "מ״ל", "short_name_en": "ml", "type": "volume"},
    "packages": {"id": "packages", "name_he": "אריזות", "name_en": "Packages", "short_name_he": "אריז׳", "short_name_en": "pkg", "type": "count"},
    "bottles": {"id": "bottles", "name_he": "בקבוקים", "name_en": "Bottles", "short_name_he": "בק׳", "short_name_en": "btl", "type": "count"},
    "cans": {"id": "cans", "name_he": "קופסאות שימורים", "name_en": "Cans", "short_name_he": "קופ׳", "short_name_en": "can", "type": "count"},
    "boxes": {"id": "boxes", "name_he": "קופסאות", "name_en": "Boxes", "short_name_he": "קופ׳", "short_name_en": "box", "type": "count"},
    "bags": {"id": "bags", "name_he": "שקיות", "name_en": "Bags", "short_name_he": "שק׳", "short_name_en": "bag", "type": "count"},
}

CATEGORY_IDS = list(DEFAULT_CATEGORIES)
UNIT_IDS = list(DEFAULT_UNITS)

DEFAULT_INVENTORY_LOCATION = "unspecified"
