"""
SuiteMatch - listing ingestion and roommate/listing recommendations.
"""

__version__ = "1.0.0"
