"""
Read-only HTTP lookup over already-seeded questions.
"""
