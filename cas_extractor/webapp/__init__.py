"""HTTP API for the CAS transaction extractor."""
