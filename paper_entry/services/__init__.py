"""Service layer: remote calls, search backends, matching, submission, warnings."""
