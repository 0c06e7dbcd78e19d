"""
Core business logic

- GroupManager: group lifecycle (create, assign, reveal, retire)
- MembershipRegistry: joining and membership lookups
- State machine: lifecycle state derivation and transition guards
- Locks: concurrency control
- Exceptions: error taxonomy shared with the API layer
"""
