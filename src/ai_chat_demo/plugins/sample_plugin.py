import logging
import urllib.request

logger = logging.getLogger(__name__)

PRICES_URL = "https://liukuri.fi/api/todaysPrices.json"


class SamplePlugin:
    """Plugin providing the demo tools: factorial and today's electricity prices."""

    def __init__(self, prices_url: str = PRICES_URL):
        self.prices_url = prices_url

    def factorial(self, n: int) -> int:
        """Calculate factorial of a number

        Args:
            n: The number to calculate the factorial of
        """
        logger.info(f"Calculating factorial of {n}")
        if n < 0:
            raise ValueError("n must be non-negative")
        result = 1
        for i in range(2, n + 1):
            result *= i
        return result

    def fetch_todays_electricity_prices_json(self) -> str:
        """Fetch today's electricity prices from Liukuri.fi"""
        logger.info("Fetching today's electricity prices from Liukuri.fi")
        try:
            with urllib.request.urlopen(self.prices_url) as response:
                charset = response.headers.get_content_charset() or "utf-8"
                return response.read().decode(charset)
        except Exception as e:
            raise RuntimeError("Failed to fetch today's electricity prices") from e

    def hook_provide_tools(self):
        """Return tools this plugin provides for auto-registration."""
        return [self.factorial, self.fetch_todays_electricity_prices_json]

    def hook_provide_system_prompt(self):
        return """
## Tools

- factorial(n): exact factorial of a non-negative integer. Use it instead of computing large factorials yourself.
- fetch_todays_electricity_prices_json(): today's electricity prices in Finland as raw JSON from Liukuri.fi.
""".strip()
