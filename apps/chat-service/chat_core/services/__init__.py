"""Service layer: loads policy subjects and enforces verdicts around repository calls."""
