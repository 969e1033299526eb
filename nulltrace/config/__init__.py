"""
nulltrace.config package

Orchestrator configuration schema and YAML loader.
"""
from .schema import NullTraceConfig, validate_rpc_url
from .loader import ConfigError, load_config

__all__ = [
    'NullTraceConfig',
    'validate_rpc_url',
    'ConfigError',
    'load_config',
]
