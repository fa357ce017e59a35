"""
Policy constants for the Swiss rent-vs-buy engine.
- Regulatory ratios behind the auto-derived parameters.
- Market defaults for the optional cost inputs.
- Solver and sweep defaults.
"""

# =====================
# Auto-derivation ratios
# =====================

# Minimum own funds: 20% of the purchase price
DOWN_PAYMENT_RATIO = 0.20

# Financed share of the price, retired linearly over the amortization period
FINANCED_RATIO = 0.80

# Maintenance and running costs per year, share of the purchase price
MAINTENANCE_RATIO = 0.0125

# Imputed rental value as share of the annual market rent
IMPUTED_RENTAL_RATIO = 0.65

# =====================
# Defaults (currency units per year unless noted)
# =====================

DEFAULT_ADDITIONAL_PURCHASE_COSTS = 5000.0   # one-off: notary, land registry, fees
DEFAULT_PROPERTY_TAX_DEDUCTIONS = 13000.0
DEFAULT_ANNUAL_RENTAL_COSTS = 20000.0
DEFAULT_TOTAL_RENOVATIONS = 0.0

# |resultValue| below this is a tie
TIE_THRESHOLD = 1.0

CURRENCY = "CHF"

# =====================
# Max-bid solver
# =====================

SOLVER_MIN_PRICE = 100_000.0
SOLVER_MAX_PRICE = 10_000_000.0
SOLVER_TOLERANCE = 1000.0
SOLVER_MAX_ITERATIONS = 200
SOLVER_MIN_TOLERANCE = 1.0

# =====================
# Sweep engine
# =====================

MAX_SWEEP_AXES = 3
SWEEP_CHUNK_SIZE = 100    # cells per parallel batch

SETTINGS_VERSION = 1
