"""
paper-entry - match exam-paper questions against the question bank and submit them.

This package handles:
- Loading paper files (one TOML file per paper)
- Searching two question-bank backends for each question stem
- Disambiguating candidates (similarity heuristic, then a judgment service)
- Submitting the chosen candidate, or recording a warning for manual follow-up
- Running many papers in sequential batches under a concurrency cap
"""
