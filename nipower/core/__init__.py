"""Core components for the NIPower framework.

Re-exports the foundational building blocks:

- ``Condition``, ``TrialConfig``, ``load_config`` - trial arms and the
  declarative parameter record.
- ``SimulationRunner``, ``ReplicateResult``, ``run_replicate`` - Monte
  Carlo replicate execution.
- ``ResultsProcessor``, ``PowerSummary``, ``build_power_result`` and the
  table writers - power calculation and reporting.
"""

from .conditions import CONDITIONS, LABELS, Condition, resolve_condition
from .config import PROTOCOL_DEFAULTS, TrialConfig, flatten_record, load_config
from .results import (
    PowerSummary,
    ResultsProcessor,
    build_power_result,
    power_table,
    replicate_table,
    write_power_report,
)
from .simulation import ReplicateResult, SimulationRunner, replicate_seed, run_replicate

__all__ = [
    # Conditions and configuration
    "Condition",
    "CONDITIONS",
    "LABELS",
    "resolve_condition",
    "TrialConfig",
    "PROTOCOL_DEFAULTS",
    "flatten_record",
    "load_config",
    # Simulation
    "SimulationRunner",
    "ReplicateResult",
    "replicate_seed",
    "run_replicate",
    # Results
    "ResultsProcessor",
    "PowerSummary",
    "build_power_result",
    "power_table",
    "replicate_table",
    "write_power_report",
]
