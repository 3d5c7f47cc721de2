"""Marketplace vertical configuration.

Loads the MarketplaceConfig from the patterns module with environment
overrides applied.
"""

from patterns.domain_config import MarketplaceConfig

config = MarketplaceConfig.from_env()
