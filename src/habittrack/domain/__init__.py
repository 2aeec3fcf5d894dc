"""Domain layer: completion history, state machine and repository protocols."""
