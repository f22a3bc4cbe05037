"""
Open Trivia DB seeding: reference sync, question ingestion, dedup, maintenance.
"""
