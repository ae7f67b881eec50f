"""wdkforge: build and package orchestration for Rust Windows driver crates.

Drives a multi-step pipeline over single crates, workspaces and emulated
workspaces (directories holding several independent workspaces):
  - Project discovery through ``cargo metadata``
  - Driver classification from ``[package.metadata.wdk]``
  - Sequential ``cargo build`` per project with continue-on-error
  - Driver packaging state machine: stampinf, inf2cat, infverif, signtool
  - Aggregated run report and a single process exit code
"""

__version__ = "0.3.0"
__description__ = "Build and package orchestration for Rust Windows driver projects"

from wdkforge.core.orchestrator import Orchestrator
from wdkforge.core.topology import TopologyResolver
from wdkforge.cli.app import app as cli

__all__ = ["Orchestrator", "TopologyResolver", "cli", "__version__"]
