"""
Cortex Core module.

Exports the fundamental system components.
"""

# Configuration
from cortex.core.config import Settings, ConfigValidator, DEFAULT_CONFIG

# Exceptions and errors
from cortex.core.exceptions import (
    CortexError,
    ConfigurationError,
    ValidationError,
    DimensionMismatchError,
    MalformedMetadataError,
    ExternalServiceError,
    EmbeddingUnavailableError,
    StoreUnavailableError,
    FallbackSearchError,
    DualRetrievalFailure,
)

# Logging
from cortex.core.logging import (
    AsyncLogger,
    PerformanceLogger,
    logger,  # Pre-configured global logger
)

# Observability
from cortex.core.tracing import LocalTracer, MetricsCollector, tracer, metrics

# Helpers
from cortex.core.id_generator import generate_id
from cortex.core.token_counter import estimate_tokens, tokens_to_chars

__all__ = [
    # Configuration
    "Settings",
    "ConfigValidator",
    "DEFAULT_CONFIG",
    # Exceptions
    "CortexError",
    "ConfigurationError",
    "ValidationError",
    "DimensionMismatchError",
    "MalformedMetadataError",
    "ExternalServiceError",
    "EmbeddingUnavailableError",
    "StoreUnavailableError",
    "FallbackSearchError",
    "DualRetrievalFailure",
    # Logging
    "AsyncLogger",
    "PerformanceLogger",
    "logger",
    # Observability
    "LocalTracer",
    "MetricsCollector",
    "tracer",
    "metrics",
    # Helpers
    "generate_id",
    "estimate_tokens",
    "tokens_to_chars",
]
