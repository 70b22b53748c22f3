"""
Health Monitoring Module
========================

Heartbeat calls to an external monitoring endpoint.
"""

from .health_check import HealthChecker

__all__ = ['HealthChecker']
