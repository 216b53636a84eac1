"""
Agentfork Package

Delegates bounded units of work from a primary tool-calling agent to
isolated task agents with their own turn and time budgets.
"""

__version__ = "0.1.0"
