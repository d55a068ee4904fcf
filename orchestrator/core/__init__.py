"""
Habit Saga Core Module
The check-in pipeline and goal creation flow.
"""
