"""Graph data model for bundled modules."""
