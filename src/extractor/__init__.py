"""
Content extraction module for tea import.
"""

from src.extractor.tea_extractor import (
    TeaPageExtractor,
    get_tea_extractor,
    reset_tea_extractor,
)

__all__ = [
    "TeaPageExtractor",
    "get_tea_extractor",
    "reset_tea_extractor",
]
