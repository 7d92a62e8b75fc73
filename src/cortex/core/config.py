"""
Configuration for Cortex.
"""

import os
import copy
import yaml
from pathlib import Path
from typing import Dict, Any, Optional, cast

from cortex.core.exceptions import ConfigurationError
from cortex.core.logging import logger


DEFAULT_CONFIG: Dict[str, Any] = {
    "version": "1.0",
    "search": {
        "limit": 10,
        "offset": 0,
        "min_similarity": 0.3,
        "snippet_length": 150,
    },
    "ranking": {
        "semantic_weight": 0.4,
        "keyword_weight": 0.3,
        "recency_weight": 0.15,
        "tag_weight": 0.1,
        "metadata_weight": 0.03,
        "length_penalty": 0.02,
        "recency_decay_days": 365,
        "keyword_method": "bm25",
        "bm25": {"k1": 1.2, "b": 0.75, "normalization_max": 10.0},
        "tfidf": {"sublinear_scaling": True, "l2_norm": True},
    },
    "fallback": {
        "threshold": 0.4,
        "distance": 100,
        "min_match_char_length": 2,
        "ignore_location": False,
        "index_ttl_seconds": 60,
        "keys": {"title": 0.4, "content": 0.3, "path": 0.2, "tags": 0.1},
    },
    "cache": {
        "ttl_seconds": 300,
        "max_size": 1000,
    },
    "rag": {
        "max_contexts": 8,
        "max_tokens": 4000,
        "min_relevance_score": 0.3,
        "diversity_weight": 0.2,
        "deduplication_threshold": 0.85,
        "chunking": {
            "max_tokens": 500,
            "overlap_tokens": 50,
            "preserve_structure": True,
            "semantic_boundaries": True,
        },
    },
    "embeddings": {
        "base_url": "http://localhost:11434",
        "model": "nomic-embed-text",
        "timeout_seconds": 30,
        "cache_size": 1000,
    },
    "logging": {"level": "INFO", "debug_mode": False},
}


class ConfigValidator:
    """
    Range and type checks on a merged configuration.

    Rules:
    1. Ranking weights are non-negative numbers
    2. BM25 k1 > 0 and b in [0, 1]
    3. Cache TTL and size are positive
    4. Thresholds and ratios live in [0, 1]
    5. Chunk overlap is smaller than chunk size
    """

    WEIGHT_KEYS = (
        "semantic_weight",
        "keyword_weight",
        "recency_weight",
        "tag_weight",
        "metadata_weight",
        "length_penalty",
    )

    def validate_config(self, config: Dict[str, Any]) -> None:
        """
        Validate a complete configuration.

        Raises:
            ConfigurationError: On the first invalid value
        """
        ranking = config.get("ranking", {})
        for key in self.WEIGHT_KEYS:
            value = ranking.get(key)
            if not self._is_number(value) or value < 0:
                logger.error("Invalid ranking weight", key=key, value=value)
                raise ConfigurationError(
                    f"Invalid ranking.{key}: {value}", context={"key": key, "value": value}
                )

        if ranking.get("keyword_method") not in ("bm25", "tfidf"):
            raise ConfigurationError(
                f"Invalid ranking.keyword_method: {ranking.get('keyword_method')}"
            )

        if not self._is_number(ranking.get("recency_decay_days")) or ranking["recency_decay_days"] <= 0:
            raise ConfigurationError(
                f"Invalid ranking.recency_decay_days: {ranking.get('recency_decay_days')}"
            )

        bm25 = ranking.get("bm25", {})
        k1 = bm25.get("k1")
        if not self._is_number(k1) or k1 <= 0:
            raise ConfigurationError(f"Invalid ranking.bm25.k1: {k1}")
        b = bm25.get("b")
        if not self._is_number(b) or not 0 <= b <= 1:
            raise ConfigurationError(f"Invalid ranking.bm25.b: {b}")
        normalization_max = bm25.get("normalization_max")
        if not self._is_number(normalization_max) or normalization_max <= 0:
            raise ConfigurationError(f"Invalid ranking.bm25.normalization_max: {normalization_max}")

        cache = config.get("cache", {})
        for key in ("ttl_seconds", "max_size"):
            value = cache.get(key)
            if not self._is_number(value) or value <= 0:
                logger.error("Invalid cache configuration", key=key, value=value)
                raise ConfigurationError(f"Invalid cache.{key}: {value}")

        fallback = config.get("fallback", {})
        self._check_unit_interval("fallback.threshold", fallback.get("threshold"))
        distance = fallback.get("distance")
        if not self._is_number(distance) or distance <= 0:
            raise ConfigurationError(f"Invalid fallback.distance: {distance}")
        for key, weight in (fallback.get("keys") or {}).items():
            if not self._is_number(weight) or weight < 0:
                raise ConfigurationError(f"Invalid fallback.keys.{key}: {weight}")

        search = config.get("search", {})
        self._check_unit_interval("search.min_similarity", search.get("min_similarity"))
        limit = search.get("limit")
        if not isinstance(limit, int) or isinstance(limit, bool) or limit < 1:
            raise ConfigurationError(f"Invalid search.limit: {limit}")
        offset = search.get("offset")
        if not isinstance(offset, int) or isinstance(offset, bool) or offset < 0:
            raise ConfigurationError(f"Invalid search.offset: {offset}")

        rag = config.get("rag", {})
        self._check_unit_interval("rag.min_relevance_score", rag.get("min_relevance_score"))
        self._check_unit_interval("rag.diversity_weight", rag.get("diversity_weight"))
        self._check_unit_interval("rag.deduplication_threshold", rag.get("deduplication_threshold"))

        chunking = rag.get("chunking", {})
        max_tokens = chunking.get("max_tokens")
        overlap = chunking.get("overlap_tokens")
        if not self._is_number(max_tokens) or max_tokens <= 0:
            raise ConfigurationError(f"Invalid rag.chunking.max_tokens: {max_tokens}")
        if not self._is_number(overlap) or overlap < 0 or overlap >= max_tokens:
            logger.error("Invalid chunk overlap", max_tokens=max_tokens, overlap_tokens=overlap)
            raise ConfigurationError(
                f"rag.chunking.overlap_tokens ({overlap}) must be smaller than max_tokens ({max_tokens})"
            )

    def _check_unit_interval(self, key: str, value: Any) -> None:
        if not self._is_number(value) or not 0 <= value <= 1:
            logger.error("Value outside [0, 1]", key=key, value=value)
            raise ConfigurationError(f"Invalid {key}: {value} (expected 0..1)")

    @staticmethod
    def _is_number(value: Any) -> bool:
        return isinstance(value, (int, float)) and not isinstance(value, bool)


class Settings:
    """
    Main configuration.

    Load order:
    1. Default values
    2. YAML file (CORTEX_CONFIG or ./.cortex)
    3. Environment variables
    """

    ENV_OVERRIDES = {
        "CORTEX_LOG_LEVEL": ("logging", "level"),
        "CORTEX_CACHE_TTL": ("cache", "ttl_seconds"),
        "CORTEX_EMBEDDING_URL": ("embeddings", "base_url"),
        "CORTEX_EMBEDDING_MODEL": ("embeddings", "model"),
    }

    def __init__(
        self, config_path: Optional[Path] = None, overrides: Optional[Dict[str, Any]] = None
    ) -> None:
        self._config_path = config_path if config_path is not None else self._find_config_file()
        self.config = self._load_config()
        if overrides:
            self._deep_merge(self.config, overrides)
        self.validator = ConfigValidator()
        self.validator.validate_config(self.config)
        logger.debug(
            "Settings initialized",
            config_source=str(self._config_path) if self._config_path else "defaults",
        )

    def _find_config_file(self) -> Optional[Path]:
        """
        Locate the configuration file.

        Search order:
        1. CORTEX_CONFIG environment variable
        2. .cortex in the current directory
        """
        env_path = os.getenv("CORTEX_CONFIG")
        if env_path:
            return Path(env_path)

        local_config = Path.cwd() / ".cortex"
        if local_config.is_file():
            return local_config

        return None

    def _load_config(self) -> Dict[str, Any]:
        """Merge defaults, file and environment into one dictionary."""
        config = copy.deepcopy(DEFAULT_CONFIG)

        if self._config_path is not None:
            if not self._config_path.is_file():
                raise ConfigurationError(
                    f"Configuration file not found: {self._config_path}",
                    context={"path": str(self._config_path)},
                )
            try:
                with open(self._config_path, encoding="utf-8") as f:
                    file_config = yaml.safe_load(f)
            except (OSError, yaml.YAMLError) as e:
                logger.error(
                    "Error reading configuration file", file=str(self._config_path), error=str(e)
                )
                raise ConfigurationError(f"Error reading configuration file: {e}", cause=e)

            if file_config:
                if not isinstance(file_config, dict):
                    raise ConfigurationError(
                        "Configuration file must contain a mapping",
                        context={"path": str(self._config_path)},
                    )
                self._deep_merge(config, file_config)
                logger.debug("Config loaded from file", keys=list(file_config.keys()))

        for env_key, path_tuple in self.ENV_OVERRIDES.items():
            env_value = os.getenv(env_key)
            if env_value:
                value_to_set: Any = env_value
                if env_key == "CORTEX_CACHE_TTL":
                    try:
                        value_to_set = int(env_value)
                    except ValueError:
                        raise ConfigurationError(f"CORTEX_CACHE_TTL must be an integer: {env_value}")
                self._set_nested(config, path_tuple, value_to_set)

        return config

    def _deep_merge(self, base: Dict[str, Any], update: Dict[str, Any]) -> None:
        """Deep merge of dictionaries."""
        for key, value in update.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(cast(Dict[str, Any], base[key]), cast(Dict[str, Any], value))
            else:
                base[key] = value

    def _set_nested(self, data: Dict[str, Any], path: tuple[str, ...], value: Any) -> None:
        """Set value at nested path."""
        current = data
        for key in path[:-1]:
            if key not in current:
                current[key] = {}
            current = current[key]
        current[path[-1]] = value

    def get(self, key: str, default: Any = None) -> Any:
        """Get a value, supporting dotted paths like "ranking.bm25.k1"."""
        if "." in key:
            current: Any = self.config
            for part in key.split("."):
                if isinstance(current, dict) and part in current:
                    current = current[part]
                else:
                    return default
            return current
        return self.config.get(key, default)

    def require(self, key: str) -> Any:
        """
        Get a required value or raise.

        Raises:
            ConfigurationError: If the key is missing
        """
        sentinel = object()
        value = self.get(key, sentinel)
        if value is sentinel:
            logger.error("Required config missing", key=key)
            raise ConfigurationError(f"Missing required config: {key}")
        return value

    def section(self, name: str) -> Dict[str, Any]:
        """Deep copy of a top-level section."""
        return copy.deepcopy(self.config.get(name, {}))
