"""
T-shirt Estimator

Heuristic T-shirt size estimation for tasks, with collaborative team voting
sessions and bulk import from CSV or Jira.
"""

__version__ = "1.0.0"

from .config import Config
from .container import Container
from .database import DatabaseManager
from .estimator import SizeEstimator
from .jira_api import JiraAPI
from .parser import InputParser
from .services import AuthService, EstimationService, SessionCoordinator
from .similarity import SimilarityRanker
from .tally import VoteTally

__all__ = [
    "Config",
    "Container",
    "DatabaseManager",
    "SizeEstimator",
    "SimilarityRanker",
    "VoteTally",
    "InputParser",
    "JiraAPI",
    "EstimationService",
    "SessionCoordinator",
    "AuthService",
]
