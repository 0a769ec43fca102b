"""
NoteSync Backend — Application Package
=======================================

What:  Per-user notes and categories with cascading consistency rules, plus a
       content-generation pipeline (PDF import, summaries, quizzes) backed by
       Google Gemini.

Architecture:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns, X-User-ID identity
    ├─────────────────────────────────────┤
    │   Pipeline / Stores / Coordinator   │  ← business rules, cascades, events
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Database resource, async sessions
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
