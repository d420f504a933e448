from sysmcp.anonymization.anonymizer import PiiAnonymizer
from sysmcp.anonymization.base import BaseAnonymizer
from sysmcp.anonymization.factory import AnonymizerFactory
from sysmcp.anonymization.models import AnonymizationMapping, Category
from sysmcp.anonymization.store import MappingStore

__all__ = [
    "AnonymizationMapping",
    "AnonymizerFactory",
    "BaseAnonymizer",
    "Category",
    "MappingStore",
    "PiiAnonymizer",
]
