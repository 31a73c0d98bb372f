# Lumen Supply Stats - Source Package
import os
from decimal import Decimal

# Horizon (Stellar public network)
HORIZON_URL = os.getenv("HORIZON_URL", "https://horizon.stellar.org").rstrip("/")

# Supply constants
ORIGINAL_SUPPLY_AMOUNT = Decimal("100000000000")
NATIVE_ASSET_TYPE = "native"
LUMEN_SUPPLY_METRICS_URL = (
    "https://www.stellar.org/developers/guides/lumen-supply-metrics.html"
)

# Refresh timing
REFRESH_INTERVAL_SECONDS = 10 * 60

# Concurrency Constants
CONCURRENCY_BALANCES = 20

# Cache / HTTP
CACHE_URL = os.getenv("CACHE_URL", "").strip()
PORT = int(os.getenv("PORT", "5000"))
