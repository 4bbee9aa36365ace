"""
Storage, activation and replay of trained community models.
"""

from community_analytics.ml.models import MLModel
from community_analytics.ml.service import ModelStore
