"""
Network usage engine.

``core`` holds configuration, logging, errors and metrics; ``services`` holds
the window resolver, the aggregator, ranking and the platform collaborators;
``api`` and ``schemas`` expose them over HTTP.
"""
