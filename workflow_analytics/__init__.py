"""
Workflow Analytics

Aggregates workflow execution records (tasks, delegations, code reviews,
subtasks and role transitions) into metrics, trends, benchmarks and
recommendations assembled into report payloads.
"""

__version__ = "0.1.0"
