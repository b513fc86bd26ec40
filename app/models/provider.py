"""Provider runtime model"""
from dataclasses import dataclass
from enum import Enum


class ProxyStrategy(str, Enum):
    """Load-balancing strategies"""
    ROUND_ROBIN = "round-robin"
    RANDOM = "random"
    LEAST_USED = "least-used"


@dataclass
class Provider:
    """Runtime provider instance"""
    id: str
    base_url: str
    token: str
    weight: int = 1
