"""Domain services. Each one is constructed per request from the process-wide objects."""
