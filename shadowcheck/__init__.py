"""
Shadow Compliance Engine

Checks a proposed building against Japanese shadow (nichiei) regulation
on the winter solstice.
"""

__version__ = "1.0.0"

from .exceptions import ShadowCheckError, InputError, InvalidParametersError
from .pipeline import ShadowCompliancePipeline, ComplianceSession

__all__ = [
    "ShadowCompliancePipeline",
    "ComplianceSession",
    "ShadowCheckError",
    "InputError",
    "InvalidParametersError"
]
