import random
from typing import Mapping, Optional

from models.listing_models import PriceEstimate


class PricingEstimator:
	"""Estimate resale prices and sell probability for a listing.

	The base price comes from the first brand keyword contained in the
	lowercased brand, in table order. The condition multiplier is matched the
	same way. Random jitter is added to both the price and the probability, so
	identical inputs do not produce identical output; only the bounds hold:

	- max_profit_price >= 3
	- 2 <= quick_sell_price <= max_profit_price
	- 15 <= sell_probability <= 99
	"""

	DEFAULT_BRAND_PRICES = {
		"nike": 22,
		"adidas": 20,
		"zara": 12,
		"h&m": 8,
		"gucci": 95,
		"prada": 85,
		"ralph lauren": 30,
		"levi": 18,
		"uniqlo": 10,
		"gap": 9,
		"north face": 35,
		"patagonia": 40,
		"carhartt": 28,
		"tommy hilfiger": 25,
		"superdry": 16,
		"primark": 5,
		"asos": 8,
		"river island": 10,
		"topshop": 12,
		"ted baker": 25,
		"burberry": 75,
		"barbour": 45,
	}

	CONDITION_MULTIPLIERS = {
		"new with tags": 1.0,
		"like new": 0.85,
		"very good": 0.7,
		"good": 0.55,
		"satisfactory": 0.4,
	}

	DEFAULT_BASE_PRICE = 15
	DEFAULT_MULTIPLIER = 0.7
	PREMIUM_THRESHOLD = 20
	PREMIUM_BONUS = 10

	def __init__(
		self,
		brand_prices: Optional[Mapping[str, float]] = None,
		condition_multipliers: Optional[Mapping[str, float]] = None,
		rng: Optional[random.Random] = None,
	):
		"""Create a PricingEstimator.

		Args:
			brand_prices: Ordered mapping of lowercase brand keyword -> base price.
			condition_multipliers: Ordered mapping of lowercase condition keyword -> multiplier.
			rng: Random source for the jitter terms. Defaults to an unseeded `random.Random`.
		"""
		self.brand_prices = dict(brand_prices or self.DEFAULT_BRAND_PRICES)
		self.condition_multipliers = dict(condition_multipliers or self.CONDITION_MULTIPLIERS)
		self.rng = rng or random.Random()

	def base_price(self, brand: str) -> float:
		brand_key = (brand or "").lower()
		for keyword, price in self.brand_prices.items():
			if keyword in brand_key:
				return price
		return self.DEFAULT_BASE_PRICE

	def condition_multiplier(self, condition: str) -> float:
		condition_key = (condition or "").lower()
		for keyword, multiplier in self.condition_multipliers.items():
			if keyword in condition_key:
				return multiplier
		return self.DEFAULT_MULTIPLIER

	def estimate(self, brand: str, condition: str) -> PriceEstimate:
		"""Return quick-sell price, max-profit price and sell probability."""
		base = self.base_price(brand)
		multiplier = self.condition_multiplier(condition)

		max_profit = max(3, round(base * multiplier + self.rng.random() * 5))
		quick_sell = max(2, round(max_profit * 0.65))

		bonus = self.PREMIUM_BONUS if base > self.PREMIUM_THRESHOLD else 0
		probability = round(60 * multiplier + self.rng.random() * 20 + bonus)
		probability = min(99, max(15, probability))

		return PriceEstimate(
			quick_sell_price=int(quick_sell),
			max_profit_price=int(max_profit),
			sell_probability=int(probability),
		)
