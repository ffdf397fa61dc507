"""
Services Layer

Business logic that:
- Accepts domain inputs (session, owner context, ids)
- Returns domain outputs (models, dataclasses, dicts)
- Does NOT depend on HTTP request/response objects
- Raises torneos.errors exceptions; routes translate them
"""
