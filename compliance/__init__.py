"""API specification compliance grading: rule catalog, scoring engine and document loaders."""
