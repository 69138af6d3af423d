"""
Services Layer

Business logic services that:
- Accept domain inputs (battles, sessions, units of work)
- Return domain outputs (models, dicts, events)
- Do NOT depend on HTTP request/response objects
- Do NOT mutate data unless explicitly designed to
"""
