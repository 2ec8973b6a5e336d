"""Workflow process engine.

Turns process definitions (named inputs bound to dataflow channels, a script
template, execution limits) into task runs executed as local subprocesses:
- channels and input binding decide how many tasks a process produces
- the local launcher materializes, spawns, supervises and classifies each task
"""

__version__ = "0.1.0"

from process_engine.engine.config import EngineSettings

__all__ = ["__version__", "EngineSettings"]
