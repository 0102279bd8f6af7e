#!/usr/bin/env python3
"""
Cross-chain IBC token migration tool
"""

__version__ = "0.1.0"

from ibc_migrator.core.checkpoint import ConfigStore
from ibc_migrator.core.config import load_settings
from ibc_migrator.core.denom import derive_ibc_denom

# Import the main classes and functions for easier access
from ibc_migrator.core.migrator import MigrationOrchestrator
from ibc_migrator.core.scenarios import run_scenarios
