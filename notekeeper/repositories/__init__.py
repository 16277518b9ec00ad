# Repositories package init
"""
NoteKeeper Backend — Repositories
===================================

    - NoteRepository: owner-scoped reads and writes of notes and note images
"""
