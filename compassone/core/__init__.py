"""Core Application Layer: Orchestrates use cases and application logic.

Connects the domain layer with the infrastructure layer through interfaces.
Contains the operation registry, request building, response mapping, the
client facade and the command handler.
"""
