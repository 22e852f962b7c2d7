"""
Cadence - recurring schedules materialized into time-bound work items.

- cadence.core: errors, settings, logging, storage contracts
- cadence.scheduling: recurrence, lifecycle, driver
- cadence.metrics: completion metrics
- cadence.ops / cli / api: operation layer and its two transports
"""

__version__ = "0.1.0"
