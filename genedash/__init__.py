"""
Genetic Marker Analysis Dashboard
FastAPI application for uploading genetic marker files, LLM-based interpretation, risk summaries and chat.
"""

__version__ = "1.0.0"
__author__ = "GeneDash Team"
__description__ = "LLM-assisted genetic marker interpretation service"
