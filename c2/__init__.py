"""
C2 contact service: contacts with hybrid lexical and semantic search over MCP.
"""
