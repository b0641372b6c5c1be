"""
Policy module for the Canopy SDK.

OPA WASM policies need an extra dependency:
    pip install canopy-sdk[opa]
"""
from .backends import CallableBackend, OpaWasmBackend, PolicyBackend, load_backend
from .engine import (
    DegradedPolicy, NoPolicy, PolicyEngine, PolicyStatus, ReadyPolicy, WarmingPolicy,
    attach_backend, interpret_result
)

__all__ = [
    'PolicyEngine', 'PolicyStatus', 'PolicyBackend',
    'NoPolicy', 'WarmingPolicy', 'ReadyPolicy', 'DegradedPolicy',
    'attach_backend', 'interpret_result', 'load_backend',
    'OpaWasmBackend', 'CallableBackend',
]
