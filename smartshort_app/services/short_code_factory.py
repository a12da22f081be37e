"""
Factory for creating short code generation strategies.
Uses caching to avoid creating multiple instances.
"""

import logging
from enum import Enum
from typing import Dict, Union

from smartshort_app.services.short_code_strategies import (
    ShortCodeStrategy,
    RandomBytesShortCodeStrategy,
    AlphabetShortCodeStrategy
)
from smartshort_app.config import settings

logger = logging.getLogger(__name__)


class ShortCodeStrategyType(Enum):
    """Available short code generation strategies"""
    RANDOM_BYTES = "random_bytes"
    ALPHABET = "alphabet"


_STRATEGIES = {
    ShortCodeStrategyType.RANDOM_BYTES: RandomBytesShortCodeStrategy,
    ShortCodeStrategyType.ALPHABET: AlphabetShortCodeStrategy,
}


class ShortCodeFactory:
    """Strategies are stateless, so one instance per type is shared by all requests"""

    _instances: Dict[ShortCodeStrategyType, ShortCodeStrategy] = {}

    @classmethod
    def create_strategy(
        cls,
        strategy_type: Union[ShortCodeStrategyType, str] = None
    ) -> ShortCodeStrategy:
        """
        Return the shared strategy for a type.

        Args:
            strategy_type: Enum member or its value ("random_bytes", "alphabet").
                          If None, uses settings.short_code_strategy.

        Raises:
            ValueError: If strategy_type is unknown
        """
        if strategy_type is None:
            strategy_type = settings.short_code_strategy
        strategy_type = ShortCodeStrategyType(strategy_type)

        instance = cls._instances.get(strategy_type)
        if instance is None:
            instance = _STRATEGIES[strategy_type]()
            cls._instances[strategy_type] = instance
            logger.debug("Short code strategy %s ready", strategy_type.value)
        return instance
