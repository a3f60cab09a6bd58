"""Domain Event definitions.

Represents significant occurrences during an API call (attempts, retries,
credential refreshes) that the observability sink reacts to.
"""
