"""业务常量（不可通过环境变量修改）"""

MAX_SYMBOLS = 20
MIN_SYMBOLS = 2
MAX_SYMBOL_LENGTH = 10
MAX_LOOKBACK_YEARS = 5
MIN_OBSERVATIONS = 30

DEFAULT_LAGS = [1, 5, 7, 30]
LAG_MIN = 1
LAG_MAX = 60
MAX_LAGS = 12
TOP_LEAD_LAG_PAIRS = 12

DEFAULT_ROLLING_WINDOW = 60
MIN_ROLLING_WINDOW = 2
MAX_ROLLING_WINDOW = 250

EXPECTED_MOVE_WINDOW = 20
EARNINGS_PRICE_LOOKBACK_DAYS = 80

INDEX_SYMBOLS = {
    "sp500": "^GSPC",
    "nasdaq100": "^NDX",
}
