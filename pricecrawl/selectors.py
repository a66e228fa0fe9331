"""Centralised selectors for the repair price calculator page."""

# ==== FORM ====
CALCULATOR_FORM = ".calculator-wrapper"

# ==== CASCADING SELECTS ====
MANUFACTURER_SELECT = "#manufacturer"
DEVICE_SELECT = "#device"
ACTION_SELECT = "#action"

# ==== RESULT ====
FINAL_PRICE = "#final-price"

# Option values equal to this are placeholders ("Bitte wählen ...").
PLACEHOLDER_VALUE = ""
