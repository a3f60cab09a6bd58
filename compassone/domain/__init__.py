"""Domain Layer: value objects, error taxonomy, events and ports.

Has no dependencies on the infrastructure or core layers.
"""
