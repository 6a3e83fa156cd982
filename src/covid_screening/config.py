from dataclasses import dataclass, field
from typing import Any, Dict, List
import yaml


@dataclass
class Config:
    """Configuration object loaded from YAML."""
    data: Dict[str, Any]
    screening: Dict[str, Any]
    balancing: Dict[str, Any]
    models: List[Dict[str, Any]]
    evaluation: Dict[str, Any] = field(default_factory=dict)
    output: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_yaml(cls, path: str) -> "Config":
        with open(path, "r") as f:
            cfg = yaml.safe_load(f)
        return cls(**cfg)
