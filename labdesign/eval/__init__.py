"""
Evaluation harness for the lab design pipeline.

Runs structured cases through the agents against a real backend, checks
invariants on the artifacts, and writes JSON reports.
"""
