"""Lumi agent execution core.

The package is split into:

- ``lumi_agent.core``: ambient configuration and logging.
- ``lumi_agent.agent_core``: the execution engine, security policy gate,
  tool dispatch and persistence abstractions.
- ``lumi_agent.server``: a small FastAPI surface for starting sessions,
  resolving approvals and cancelling work.
"""

__version__ = "0.1.0"
