"""
External inference boundary: provider protocol, HTTP client and the
staged response parser.
"""

from .client import HttpInferenceClient, InferenceProvider, extract_text
from .parser import parse_inference_response

__all__ = [
    "HttpInferenceClient",
    "InferenceProvider",
    "extract_text",
    "parse_inference_response",
]
