"""
AI-assisted lab space design pipeline.

Turns free-text lab requirements into validated layouts and derives budget,
safety, equipment, emotion-design and parallel-universe analyses from them.
"""
