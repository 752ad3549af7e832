"""Concept co-occurrence graph: extraction, storage, updates and queries.

Concepts are the literal `[[...]]` references found in notes. Two concepts
referenced by the same note are connected; every further co-occurrence
strengthens the connection.
"""
