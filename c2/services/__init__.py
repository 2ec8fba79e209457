"""
Contact services: embeddings, search, CRUD and tool payloads.
"""
