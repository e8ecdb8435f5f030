"""Domain layer for taskgraph.

Pure models and rules, no I/O:

- shared: Result type, typed errors, base domain event
- task: Task model, status state machine, recurrence, audit, changeset
- graph: adjacency index, cycle detection, schedule planning
"""
