"""Feed caching for the stacq content-curation backend."""
