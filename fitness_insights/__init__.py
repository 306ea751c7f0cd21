"""
Personalized training insight engine.

Turns workout history and a training goal into ranked workout suggestions,
fatigue and rest-day guidance, leaderboard standings and a prioritized,
dismissible stream of insights.
"""

__version__ = "0.1.0"
