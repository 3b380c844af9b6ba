"""
Services Layer

Pure business logic services that:
- Accept domain inputs (IDs, sessions, snapshots)
- Return domain outputs (models, dataclasses)
- Do NOT depend on HTTP request/response objects
- Do NOT mutate data unless explicitly designed to (match_assignment)
"""
