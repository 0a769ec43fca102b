# Services package init
"""
NoteSync Backend — Services Layer
==================================

What:  Business logic between the routes (HTTP) and the database.
How:   Services are built once by the application container (dependencies.py)
       and receive an AsyncSession per call.

Service Inventory:
    - NoteStore / CategoryStore: CRUD with validation and domain events
    - ConsistencyCoordinator: rename/delete cascades, ensure-category upsert
    - GenerationPipeline: PDF import, summary and quiz generation
    - GenerationStrategy + GeminiClient: external (Gemini) or local generation
    - block_codec: block tree ↔ plain text
    - EventBus + observers: logging, activity tracking, webhook
    - FileService: uploaded PDF validation
"""
